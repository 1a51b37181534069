#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Version helpers for taskpilot."""

from __future__ import annotations

import platform
import subprocess
from pathlib import Path
from typing import Dict, Optional

from taskpilot._version import TASKPILOT_VERSION, TASKPILOT_GIT_COMMIT


def get_version() -> str:
    """Return the package version."""
    if TASKPILOT_VERSION:
        return TASKPILOT_VERSION

    try:
        from importlib.metadata import version

        return version("taskpilot-agent")
    except Exception:
        return "unknown"


def get_git_commit(short: bool = True) -> Optional[str]:
    """Return the git commit hash, preferring the build-time value if present."""
    if TASKPILOT_GIT_COMMIT and TASKPILOT_GIT_COMMIT != "unknown":
        return TASKPILOT_GIT_COMMIT[:7] if short else TASKPILOT_GIT_COMMIT

    try:
        repo_root = Path(__file__).resolve().parent.parent
        cmd = ["git", "rev-parse", "--short", "HEAD"] if short else ["git", "rev-parse", "HEAD"]
        commit = subprocess.check_output(cmd, cwd=repo_root, stderr=subprocess.DEVNULL)
        return commit.decode().strip()
    except Exception:
        return None


def system_info() -> Dict[str, str]:
    return {
        "os": platform.system(),
        "os_release": platform.release(),
        "architecture": platform.machine(),
        "python_version": platform.python_version(),
    }


def build_version_output(provider: str, model: str, info: Optional[Dict[str, str]] = None) -> str:
    """Format detailed version information for display."""
    info = info or system_info()
    version = get_version()
    commit = get_git_commit(short=True)

    output = ["\ntaskpilot - Plan/Execute/Reflect Orchestrator"]
    output.append("=" * 60)
    if commit:
        output.append(f"  Version:          {version} (commit {commit})")
    else:
        output.append(f"  Version:          {version}")
    output.append(f"  Provider:         {provider}")
    output.append(f"  Model:            {model}")
    output.append("\nSystem:")
    output.append(f"  OS:               {info['os']} {info['os_release']}")
    output.append(f"  Architecture:     {info['architecture']}")
    output.append(f"  Python:           {info['python_version']}")

    return "\n".join(output)
