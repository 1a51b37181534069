#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Exception hierarchy for taskpilot."""

from typing import List, Optional


class TaskpilotError(Exception):
    """Base class for all taskpilot errors."""


class ToolNotFoundError(TaskpilotError):
    """A plan step names a tool that is not registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class MissingParameterError(TaskpilotError):
    """Required tool parameters are absent."""

    def __init__(self, tool_name: str, missing: List[str]):
        self.tool_name = tool_name
        self.missing = list(missing)
        super().__init__(f"Missing required parameters for {tool_name}: {', '.join(self.missing)}")


class ToolExecutionError(TaskpilotError):
    """A tool failed while running."""


class PlanParseError(TaskpilotError):
    """Planner output could not be turned into a plan."""

    def __init__(self, message: str, raw: Optional[object] = None):
        self.raw = raw
        super().__init__(message)


class PlanValidationError(TaskpilotError):
    """A candidate plan was rejected by validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(message)


class ReplanningError(TaskpilotError):
    """The planner could not produce a replacement plan."""


class PlannerUnavailableError(TaskpilotError):
    """The planner backend could not be reached or returned an error."""
