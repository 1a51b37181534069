#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Tool registry: name -> capability lookup for plan dispatch."""

from typing import Any, Dict, List, Optional

from taskpilot.debug_logger import get_logger
from taskpilot.tools.base import Tool


class ToolRegistry:
    """Maps tool names to tool instances."""

    def __init__(self, tools: Optional[List[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name.

        Raises:
            ValueError: if the object has no name or no callable ``run``
        """
        name = getattr(tool, "name", None)
        if not name or not isinstance(name, str):
            raise ValueError("Tool must have a non-empty name")
        if not callable(getattr(tool, "run", None)):
            raise ValueError(f"Tool '{name}' must implement run(params)")

        if name in self._tools:
            get_logger().warning("Replacing registered tool %s", name)
        self._tools[name] = tool
        get_logger().log("tools", "TOOL_REGISTERED", {"tool": name}, "DEBUG")

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def select(self, name: str) -> Optional[Tool]:
        """Return the tool registered under this exact name, or None."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def available_tools(self) -> List[Dict[str, Any]]:
        return [tool.metadata() for tool in self._tools.values()]

    def catalog_text(self) -> str:
        """One ``- Name: description`` line per tool, for planner prompts."""
        return "\n".join(f"- {tool.name}: {tool.description}" for tool in self._tools.values())

    def attach_event_store(self, event_store) -> None:
        for tool in self._tools.values():
            tool.event_store = event_store

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(event_store=None) -> ToolRegistry:
    """Registry with the built-in file, search and command tools."""
    from taskpilot.tools.command_runner import ExecuteCommandTool
    from taskpilot.tools.file_ops import ReadFileTool, WriteFileTool
    from taskpilot.tools.find_file import FindFileTool

    return ToolRegistry([
        ReadFileTool(event_store=event_store),
        WriteFileTool(event_store=event_store),
        FindFileTool(event_store=event_store),
        ExecuteCommandTool(event_store=event_store),
    ])
