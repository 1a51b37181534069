#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Centralized debug logging system for taskpilot.

Debug logging is enabled with the --debug flag. Each session writes one log
file under .taskpilot/logs/ in a structured format that is easy to review
after a run (planning attempts, validation decisions, step dispatch, tool
errors, replanning).
"""

import json
import logging
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

from taskpilot import config


def prune_old_logs(log_dir: Path, keep: int) -> None:
    """Remove old log files beyond the configured retention limit."""

    if keep < 1 or not log_dir.exists():
        return

    log_files = sorted(
        [path for path in log_dir.glob("*.log") if path.is_file()],
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )

    for stale_file in log_files[keep:]:
        try:
            stale_file.unlink()
        except OSError:
            continue


class DebugLogger:
    """Centralized debug logger with component-specific logging."""

    _instance: Optional['DebugLogger'] = None
    _enabled: bool = False
    _log_file: Optional[Path] = None
    _loggers: Dict[str, logging.Logger] = {}

    def __init__(self, enabled: bool = False, log_dir: Optional[Path] = None):
        """Initialize the debug logger.

        Args:
            enabled: Whether debug logging is enabled
            log_dir: Directory to store log files (defaults to .taskpilot/logs/)
        """
        self._enabled = enabled

        if enabled:
            if log_dir is None:
                log_dir = config.LOGS_DIR
            log_dir.mkdir(exist_ok=True, parents=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._log_file = log_dir / f"taskpilot_debug_{timestamp}.log"

            self._setup_logging()

            prune_old_logs(log_dir, config.LOG_RETENTION_LIMIT)

            self.log("system", "DEBUG_SESSION_START", {
                "timestamp": datetime.now().isoformat(),
                "log_file": str(self._log_file),
                "cwd": str(Path.cwd())
            })

    @classmethod
    def initialize(cls, enabled: bool = False, log_dir: Optional[Path] = None) -> 'DebugLogger':
        """Initialize the global debug logger instance."""
        if cls._instance is None:
            cls._instance = cls(enabled, log_dir)
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'DebugLogger':
        """Get the global debug logger instance."""
        if cls._instance is None:
            cls._instance = cls(enabled=False)
        return cls._instance

    def _setup_logging(self):
        formatter = logging.Formatter(
            '%(asctime)s | %(name)-26s | %(levelname)-8s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = logging.FileHandler(self._log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

        root_logger = logging.getLogger('taskpilot')
        root_logger.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)
        root_logger.propagate = False

    def get_logger(self, component: str) -> logging.Logger:
        """Get or create a logger for a specific component.

        Args:
            component: Component name (e.g., 'planner', 'executor', 'tools')
        """
        if component not in self._loggers:
            self._loggers[component] = logging.getLogger(f'taskpilot.{component}')
        return self._loggers[component]

    def log(self, component: str, event: str, data: Optional[Dict[str, Any]] = None, level: str = "INFO"):
        """Log a structured event.

        Args:
            component: Component name (e.g., 'planner', 'executor')
            event: Event type/name
            data: Optional dictionary of event data
            level: Log level (DEBUG, INFO, WARNING, ERROR)
        """
        if not self._enabled:
            return

        logger = self.get_logger(component)

        message = f"[{event}]"
        if data:
            message += f" {json.dumps(data, indent=2, default=str)}"

        log_level = getattr(logging, level.upper(), logging.INFO)
        logger.log(log_level, message)

    def log_function_call(self, component: str, function_name: str, args: tuple = (), kwargs: dict = None):
        if not self._enabled:
            return

        data = {
            "function": function_name,
            "args": [str(arg)[:200] for arg in args],
        }
        if kwargs:
            data["kwargs"] = {k: str(v)[:200] for k, v in kwargs.items()}

        self.log(component, "FUNCTION_CALL", data, "DEBUG")

    def log_llm_request(self, model: str, prompt: str, options: Optional[Dict[str, Any]] = None):
        """Log a planner request.

        Args:
            model: Model name
            prompt: Prompt text sent to the model
            options: Generation options (max_tokens, temperature, task_type...)
        """
        if not self._enabled:
            return

        data = {
            "model": model,
            "prompt_chars": len(prompt),
            "prompt_preview": prompt[:500],
        }
        if options:
            data["options"] = options

        self.log("llm", "LLM_REQUEST", data, "DEBUG")

    def log_llm_response(self, model: str, content: Any, token_count: Optional[Dict[str, int]] = None):
        """Log a planner response.

        Args:
            model: Model name
            content: Raw response content (string or parsed object)
            token_count: Optional prompt/completion token counts
        """
        if not self._enabled:
            return

        data = {
            "model": model,
            "content_type": type(content).__name__,
            "content_preview": str(content)[:500],
        }
        if token_count:
            data["token_count"] = token_count

        self.log("llm", "LLM_RESPONSE", data, "DEBUG")

    def log_tool_execution(self, tool_name: str, arguments: dict, result: Any = None, error: Optional[str] = None):
        """Log a tool execution.

        Args:
            tool_name: Name of the tool
            arguments: Tool arguments
            result: Tool execution result
            error: Error message if execution failed
        """
        if not self._enabled:
            return

        data = {
            "tool": tool_name,
            "arguments": {k: str(v)[:200] for k, v in arguments.items()},
        }

        if error:
            data["error"] = str(error)
            level = "ERROR"
        else:
            data["result_type"] = type(result).__name__
            data["result_preview"] = str(result)[:500] if result is not None else None
            level = "DEBUG"

        self.log("tools", "TOOL_EXECUTION", data, level)

    def log_step_status(self, step_index: int, description: str, status: str,
                        details: Optional[Dict[str, Any]] = None):
        """Log a plan step status change.

        Args:
            step_index: Position of the step in the plan
            description: Step description
            status: New status (running, succeeded, failed, halted)
            details: Optional additional details
        """
        if not self._enabled:
            return

        data = {
            "step_index": step_index,
            "description": description,
            "status": status,
        }
        if details:
            data["details"] = details

        self.log("executor", "STEP_STATUS_CHANGE", data, "INFO")

    def log_error(self, component: str, error: Exception, context: Optional[Dict[str, Any]] = None):
        """Log an error with context."""
        if not self._enabled:
            return

        data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        if context:
            data["context"] = context

        self.log(component, "ERROR", data, "ERROR")

    def log_workflow_phase(self, phase: str, details: Optional[Dict[str, Any]] = None):
        """Log a workflow phase transition.

        Args:
            phase: Phase name (planning, validation, execution, reflection, evaluation, replanning)
            details: Optional phase details
        """
        if not self._enabled:
            return

        data = {"phase": phase}
        if details:
            data.update(details)

        self.log("orchestrator", "WORKFLOW_PHASE", data, "INFO")

    def _log_plain(self, level: str, msg: str, *args: Any, **kwargs: Any) -> None:
        """Forward standard logging-style calls when debug logging is enabled."""
        if not self._enabled:
            return

        logger = self.get_logger("general")
        log_level = getattr(logging, level.upper(), logging.INFO)
        logger.log(log_level, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_plain("INFO", msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_plain("WARNING", msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_plain("ERROR", msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_plain("DEBUG", msg, *args, **kwargs)

    @property
    def enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self._enabled

    @property
    def log_file_path(self) -> Optional[Path]:
        """Get the path to the current log file."""
        return self._log_file

    def close(self):
        """Close the logger and write session end marker."""
        if self._enabled:
            self.log("system", "DEBUG_SESSION_END", {
                "timestamp": datetime.now().isoformat()
            })

            for logger in self._loggers.values():
                for handler in logger.handlers[:]:
                    handler.close()
                    logger.removeHandler(handler)

            root_logger = logging.getLogger('taskpilot')
            for handler in root_logger.handlers[:]:
                handler.close()
                root_logger.removeHandler(handler)


def log_function(component: str):
    """Decorator to automatically log function calls.

    Usage:
        @log_function('planner')
        def plan_task(self, user_input, context):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = DebugLogger.get_instance()
            if logger.enabled:
                logger.log_function_call(component, func.__name__, args, kwargs)
            return func(*args, **kwargs)
        return wrapper
    return decorator


def get_logger() -> DebugLogger:
    """Get the global debug logger instance."""
    return DebugLogger.get_instance()


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return get_logger().enabled
