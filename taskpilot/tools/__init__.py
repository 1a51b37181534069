#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Tool contract, registry and built-in tools for taskpilot."""

from taskpilot.tools.base import Tool, ToolParameter, check_required_params
from taskpilot.tools.command_runner import ExecuteCommandTool
from taskpilot.tools.file_ops import ReadFileTool, WriteFileTool
from taskpilot.tools.find_file import FindFileTool
from taskpilot.tools.registry import ToolRegistry, build_default_registry

__all__ = [
    "Tool",
    "ToolParameter",
    "check_required_params",
    "ToolRegistry",
    "build_default_registry",
    "ReadFileTool",
    "WriteFileTool",
    "FindFileTool",
    "ExecuteCommandTool",
]
