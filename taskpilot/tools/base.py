#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Tool contract shared by every capability the engine can dispatch."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import MissingParameterError


# Parameter names planners commonly emit in place of the canonical ones
PARAMETER_ALIASES: Dict[str, List[str]] = {
    "filePath": ["filepath", "file_path", "path"],
    "sourcePath": ["source_path", "sourcepath", "path", "file"],
    "content": ["code", "text", "data"],
    "command": ["cmd", "exec", "script"],
}

SENSITIVE_PARAM_MARKERS = [
    "password", "token", "apikey", "secret", "credential", "api_key", "auth_token", "key",
]

_RESULT_PREVIEW_CHARS = 1000


@dataclass
class ToolParameter:
    """Declared parameter of a tool."""

    type: str
    description: str
    required: bool = False
    default: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "description": self.description, "required": self.required}
        if self.default is not None:
            data["default"] = self.default
        return data


def sanitize_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values of parameters whose names look like secrets."""
    safe = dict(params or {})
    for key in safe:
        lowered = key.lower()
        if any(marker in lowered for marker in SENSITIVE_PARAM_MARKERS):
            safe[key] = "********"
    return safe


def sanitize_result(result: Any) -> Any:
    """Truncate long strings so results stay readable in logs and events."""
    if result is None:
        return {}
    if isinstance(result, str) and len(result) > _RESULT_PREVIEW_CHARS:
        return result[:_RESULT_PREVIEW_CHARS] + "... [truncated]"
    if isinstance(result, dict):
        return {
            key: (value[:_RESULT_PREVIEW_CHARS] + "... [truncated]")
            if isinstance(value, str) and len(value) > _RESULT_PREVIEW_CHARS else value
            for key, value in result.items()
        }
    return result


class Tool(ABC):
    """A named, side-effecting capability with a declared parameter schema.

    Subclasses set ``name``, ``description`` and ``parameters`` and implement
    ``_run``. Callers use ``run``, which normalizes parameter aliases, fills in
    defaults, enforces required parameters and records tool events.
    """

    name: str = ""
    description: str = ""
    parameters: Dict[str, ToolParameter] = {}

    def __init__(self, event_store=None):
        if not self.name:
            self.name = self.__class__.__name__
        self.event_store = event_store

    def required_params(self) -> List[str]:
        """Names of parameters that must be present before dispatch."""
        return [name for name, spec in self.parameters.items() if spec.required]

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {name: spec.to_dict() for name, spec in self.parameters.items()},
        }

    def normalize_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy with canonical names and declared defaults applied."""
        normalized = dict(params or {})
        logger = get_logger()

        for canonical, variations in PARAMETER_ALIASES.items():
            if canonical not in self.parameters or normalized.get(canonical) is not None:
                continue
            for variation in variations:
                if normalized.get(variation) is not None:
                    normalized[canonical] = normalized[variation]
                    logger.debug("Normalized parameter %s to %s for %s", variation, canonical, self.name)
                    break

        for name, spec in self.parameters.items():
            if normalized.get(name) is None and spec.default is not None:
                normalized[name] = spec.default

        return normalized

    def run(self, params: Dict[str, Any]) -> Any:
        """Validate parameters and run the tool.

        Raises:
            MissingParameterError: if a required parameter is absent
            Exception: whatever the tool implementation raises
        """
        logger = get_logger()
        safe_params = sanitize_params(params)
        self._record_event("tool_start", {"tool": self.name, "params": safe_params})

        try:
            normalized = self.normalize_params(params)
            missing = [name for name in self.required_params() if normalized.get(name) is None]
            if missing:
                raise MissingParameterError(self.name, missing)

            result = self._run(normalized)
        except Exception as e:
            logger.log_tool_execution(self.name, safe_params, error=str(e))
            self._record_event("tool_error", {"tool": self.name, "error": str(e)}, success=False)
            raise

        logger.log_tool_execution(self.name, safe_params, result=result)
        self._record_event(
            "tool_success",
            {"tool": self.name, "params": safe_params, "result": sanitize_result(result)},
        )
        return result

    @abstractmethod
    def _run(self, params: Dict[str, Any]) -> Any:
        """Tool implementation; receives normalized parameters."""

    def _record_event(self, event_type: str, data: Dict[str, Any], success: bool = True) -> None:
        if self.event_store is None:
            return
        try:
            self.event_store.save_event({"type": event_type, **data, "success": success})
        except OSError as e:
            get_logger().warning("Error registering %s event: %s", event_type, e)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


def check_required_params(tool: Any, params: Optional[Dict[str, Any]]) -> List[str]:
    """Return the required parameter names whose value is absent.

    Aliases are honoured for tools built on ``Tool``, so a plan that says
    ``path`` satisfies a required ``filePath``.
    """
    params = params or {}
    if isinstance(tool, Tool):
        params = tool.normalize_params(params)
        required = tool.required_params()
    else:
        required = list(getattr(tool, "required_params", lambda: [])())
    return [name for name in required if params.get(name) is None]
