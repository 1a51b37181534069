#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Shell command execution tool.

Commands are parsed with shlex.split() and run with shell=False. Shell
metacharacters (&&, ;, |, >, <, backticks, $(), ...) are rejected before
anything is executed.
"""

import os
import re
import shlex
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from taskpilot import config
from taskpilot.exceptions import ToolExecutionError
from taskpilot.tools.base import Tool, ToolParameter


FORBIDDEN_RE = re.compile(r"[;&|><`]|(\$\()|\r|\n")

FORBIDDEN_TOKENS = {"&&", "||", ";", "|", "&", ">", "<", ">>", "2>", "1>", "<<",
                    "2>&1", "1>&2", "`", "$(", "${"}

# Commands that search text; a failure here leaves consumers without input
SEARCH_COMMANDS = ("grep", "rg", "ag", "findstr")


def parse_and_validate(cmd: str) -> Tuple[bool, str, List[str]]:
    """Parse and validate a command string for safe execution.

    Returns:
        Tuple of (is_valid, error_message, parsed_args)
    """
    if FORBIDDEN_RE.search(cmd):
        return False, "shell metacharacters not allowed (&&, ;, |, >, <, `, $(), etc.)", []

    try:
        args = shlex.split(cmd, posix=(os.name != "nt"))
    except ValueError as e:
        return False, f"failed to parse command: {e}", []

    if not args:
        return False, "empty command", []

    if any(tok in FORBIDDEN_TOKENS for tok in args):
        return False, "shell operators not allowed in arguments", []

    return True, "", args


def resolve_cwd(cwd: Optional[str]) -> Path:
    if not cwd:
        return config.ROOT
    path = Path(cwd).expanduser()
    if not path.is_absolute():
        path = config.ROOT / path
    return path.resolve(strict=False)


def run_command_safe(cmd: str, *, timeout: int = 60, cwd: Optional[str] = None) -> Dict[str, Any]:
    """Execute a command with shell=False.

    Returns:
        Dict with rc, stdout, stderr, cmd, cwd and, when the command could not
        run, blocked/timeout/error keys.
    """
    resolved_cwd = resolve_cwd(cwd)
    is_valid, error_msg, args = parse_and_validate(cmd)
    if not is_valid:
        return {"blocked": True, "error": error_msg, "cmd": cmd, "cwd": str(resolved_cwd), "rc": -1}

    try:
        proc = subprocess.Popen(
            args,
            shell=False,
            cwd=str(resolved_cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        try:
            stdout_data, stderr_data = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout_data, stderr_data = proc.communicate()
            return {
                "timeout": timeout,
                "cmd": cmd,
                "cwd": str(resolved_cwd),
                "rc": -1,
                "stdout": stdout_data or "",
                "stderr": stderr_data or "",
                "error": f"command exceeded {timeout}s timeout",
            }
    except FileNotFoundError:
        return {"error": f"command not found: {args[0]}", "cmd": cmd, "cwd": str(resolved_cwd), "rc": -1}
    except OSError as e:
        return {"error": f"OS error: {e}", "cmd": cmd, "cwd": str(resolved_cwd), "rc": -1}

    return {
        "rc": proc.returncode,
        "stdout": stdout_data or "",
        "stderr": stderr_data or "",
        "cmd": cmd,
        "cwd": str(resolved_cwd),
    }


def is_search_command(command: Any) -> bool:
    """True when the program being run is a text-search utility."""
    if not isinstance(command, str):
        return False
    tokens = command.strip().split()
    if not tokens:
        return False
    program = Path(tokens[0]).name.lower()
    if program.endswith(".exe"):
        program = program[:-4]
    return program in SEARCH_COMMANDS


class ExecuteCommandTool(Tool):
    name = "ExecuteCommandTool"
    description = "Executes an operating system command in the workspace (no shell operators)"
    parameters = {
        "command": ToolParameter("string", "Command to execute", required=True),
        "workingDirectory": ToolParameter("string", "Working directory for the command"),
        "timeout": ToolParameter("number", "Maximum execution time in seconds"),
    }

    def _run(self, params: Dict[str, Any]) -> Dict[str, Any]:
        command = params["command"]
        if not isinstance(command, str) or not command.strip():
            raise ToolExecutionError("A valid command string is required")

        timeout = int(params.get("timeout") or config.COMMAND_TIMEOUT)
        working_directory = params.get("workingDirectory") or params.get("cwd")
        command_id = f"cmd-{int(time.time() * 1000)}"

        outcome = run_command_safe(command, timeout=timeout, cwd=working_directory)

        if outcome.get("blocked"):
            raise ToolExecutionError(f"Command not allowed: {outcome['error']}")
        if outcome.get("timeout"):
            raise ToolExecutionError(f"Command timeout: {outcome['error']}")
        if outcome.get("error"):
            raise ToolExecutionError(outcome["error"])
        if outcome["rc"] != 0:
            stderr = (outcome.get("stderr") or "").strip()
            detail = f": {stderr[:500]}" if stderr else ""
            raise ToolExecutionError(f"Command failed with exit code {outcome['rc']}{detail}")

        return {
            "success": True,
            "output": outcome["stdout"],
            "error": outcome["stderr"] or None,
            "exitCode": outcome["rc"],
            "commandId": command_id,
            "workingDirectory": outcome["cwd"],
        }
