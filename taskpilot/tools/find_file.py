#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Locate files in the workspace by name or glob pattern."""

import glob
import pathlib
from typing import Any, Dict, List

from taskpilot import config
from taskpilot.tools.base import Tool, ToolParameter


def _should_skip(path: pathlib.Path) -> bool:
    return any(part in config.EXCLUDE_DIRS for part in path.parts)


def iter_workspace_files(pattern: str = "**/*", limit: int = 0) -> List[pathlib.Path]:
    """Files under ROOT matching a glob, excluding vendor/cache directories."""
    root = config.ROOT
    files: List[pathlib.Path] = []
    for raw in glob.iglob(str(root / pattern), recursive=True):
        path = pathlib.Path(raw)
        if not path.is_file():
            continue
        try:
            rel = path.relative_to(root)
        except ValueError:
            rel = path
        if _should_skip(rel):
            continue
        files.append(path)
        if limit and len(files) >= limit:
            break
    return files


class FindFileTool(Tool):
    name = "FindFileTool"
    description = "Finds the real path(s) of a file in the workspace using a filename or glob pattern."
    parameters = {
        "pattern": ToolParameter(
            "string",
            "Filename or glob pattern to search for (e.g. user_service.py or **/user_service.py)",
            required=True,
        ),
        "maxResults": ToolParameter("number", "Maximum number of results to return (default: 5)", default=5),
    }

    def _run(self, params: Dict[str, Any]) -> Dict[str, Any]:
        pattern = str(params["pattern"]).strip()
        max_results = int(params.get("maxResults") or 5)

        matches = sorted(str(path) for path in iter_workspace_files(pattern))[:max_results]
        return {
            "matches": matches,
            "pattern": pattern,
            "found": bool(matches),
        }
