#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Criticality and continuation analysis after a step failure.

``can_continue`` answers one question: after the step that was just
attempted, may the remaining steps still run? Rules, in order:

1. The step succeeded: continue.
2. A remaining step consumes a resource tag that only this step produces.
3. A remaining step lists this step in ``depends_on``.
4. Tool heuristics: a failed read followed by a write/fix, or a failed
   text search followed by a write/fix/command.
5. Otherwise continue (unknown dependencies are assumed independent).
"""

from typing import List, Optional

from taskpilot.debug_logger import get_logger
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import StepResult
from taskpilot.tools.command_runner import is_search_command


READ_TOOLS = {"ReadFileTool"}
WRITE_TOOLS = {"WriteFileTool", "FixErrorTool"}
COMMAND_TOOL = "ExecuteCommandTool"


class CriticalityAnalyzer:

    def is_critical(self, step: PlanStep, plan: Optional[Plan] = None) -> bool:
        """Explicit ``is_critical`` when set, otherwise critical."""
        if step.is_critical is not None:
            return step.is_critical
        return True

    def can_continue(self, step: PlanStep, results: List[StepResult], plan: Plan) -> bool:
        if results and results[-1].success:
            return True

        index = self._position(step, plan)
        remaining = plan.steps[index + 1:] if index >= 0 else []

        reason = self._blocking_reason(step, remaining, plan, index)
        if reason:
            get_logger().log("criticality", "CONTINUATION_BLOCKED", {
                "step": step.description,
                "reason": reason,
            }, "INFO")
            return False
        return True

    @staticmethod
    def _position(step: PlanStep, plan: Plan) -> int:
        for index, candidate in enumerate(plan.steps):
            if candidate is step:
                return index
        original = step.description
        if original.startswith("Retry: "):
            original = original[len("Retry: "):]
        return plan.index_of(original)

    def _blocking_reason(self, step: PlanStep, remaining: List[PlanStep], plan: Plan, index: int) -> Optional[str]:
        unique_tags = self._uniquely_produced(step, plan, index)
        for later in remaining:
            consumed = unique_tags.intersection(later.consumes)
            if consumed:
                return f"'{later.description}' consumes {sorted(consumed)}"

        for later in remaining:
            if step.description in later.depends_on:
                return f"'{later.description}' depends on this step"

        if step.tool in READ_TOOLS:
            if any(later.tool in WRITE_TOOLS for later in remaining):
                return "a later step writes what this step was to read"

        if step.tool == COMMAND_TOOL and is_search_command(step.params.get("command")):
            if any(later.tool in WRITE_TOOLS or later.tool == COMMAND_TOOL for later in remaining):
                return "a later step consumes this search result"

        return None

    @staticmethod
    def _uniquely_produced(step: PlanStep, plan: Plan, index: int) -> set:
        """Tags this step produces that no other step in the plan produces."""
        tags = set(step.produces)
        for other_index, other in enumerate(plan.steps):
            if other_index != index:
                tags -= set(other.produces)
        return tags
