#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""File read/write tools for taskpilot."""

import pathlib
from datetime import datetime
from typing import Any, Dict

from taskpilot import config
from taskpilot.exceptions import ToolExecutionError
from taskpilot.tools.base import Tool, ToolParameter


LANGUAGE_BY_EXTENSION = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "java": "java",
    "rb": "ruby",
    "php": "php",
    "c": "c",
    "cpp": "cpp",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "swift": "swift",
    "html": "html",
    "css": "css",
    "json": "json",
    "md": "markdown",
    "yaml": "yaml",
    "yml": "yaml",
    "xml": "xml",
    "sql": "sql",
}

WRITE_MODES = ("write", "append", "create")


def resolve_path(path: str) -> pathlib.Path:
    """Resolve a tool path: absolute paths as given, relative ones under ROOT."""
    if not path:
        raise ToolExecutionError("No file path provided")
    candidate = pathlib.Path(str(path)).expanduser()
    if not candidate.is_absolute():
        candidate = config.ROOT / candidate
    return candidate.resolve(strict=False)


def detect_language(path: pathlib.Path) -> str:
    return LANGUAGE_BY_EXTENSION.get(path.suffix.lower().lstrip("."), "text")


class ReadFileTool(Tool):
    name = "ReadFileTool"
    description = "Reads content from a file"
    parameters = {
        "filePath": ToolParameter("string", "Path to the file to read", required=True),
        "encoding": ToolParameter("string", "File encoding", default="utf-8"),
        "maxLines": ToolParameter("number", "Maximum number of lines to read (0 = all)", default=0),
        "startLine": ToolParameter("number", "Starting line number (0-based)", default=0),
    }

    def _run(self, params: Dict[str, Any]) -> Dict[str, Any]:
        path = resolve_path(params["filePath"])
        encoding = params.get("encoding") or "utf-8"
        max_lines = int(params.get("maxLines") or 0)
        start_line = int(params.get("startLine") or 0)

        if not path.exists():
            raise ToolExecutionError(f"Error reading file: File not found: {params['filePath']}")
        if path.is_dir():
            raise ToolExecutionError(f"Error reading file: Is a directory: {params['filePath']}")

        stat = path.stat()
        if stat.st_size > config.MAX_FILE_BYTES:
            raise ToolExecutionError(
                f"Error reading file: Too large (> {config.MAX_FILE_BYTES} bytes): {params['filePath']}"
            )

        try:
            content = path.read_text(encoding=encoding, errors="replace")
        except (OSError, LookupError) as e:
            raise ToolExecutionError(f"Error reading file: {e}") from e

        truncated = start_line > 0 or max_lines > 0
        if truncated:
            lines = content.split("\n")
            end_line = start_line + max_lines if max_lines > 0 else len(lines)
            content = "\n".join(lines[start_line:end_line])

        return {
            "content": content,
            "filePath": str(path),
            "language": detect_language(path),
            "size": stat.st_size,
            "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            "truncated": truncated,
        }


class WriteFileTool(Tool):
    name = "WriteFileTool"
    description = "Writes content to a file"
    parameters = {
        "filePath": ToolParameter("string", "Path to the file to write", required=True),
        "content": ToolParameter("string", "Content to write to the file", required=True),
        "encoding": ToolParameter("string", "File encoding", default="utf-8"),
        "mode": ToolParameter(
            "string",
            'Write mode: "write" (overwrite file), "append" (add to end), or "create" (only if file does not exist)',
            default="write",
        ),
    }

    def _run(self, params: Dict[str, Any]) -> Dict[str, Any]:
        path = resolve_path(params["filePath"])
        content = params["content"]
        if not isinstance(content, str):
            content = str(content)
        encoding = params.get("encoding") or "utf-8"
        mode = params.get("mode") or "write"
        if mode not in WRITE_MODES:
            raise ToolExecutionError(f"Error writing to file: unknown mode '{mode}'")

        existed = path.exists()
        if mode == "create" and existed:
            raise ToolExecutionError(f"Error writing to file: File already exists: {path}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if mode == "append" and existed:
                with path.open("a", encoding=encoding) as handle:
                    handle.write(content)
            else:
                path.write_text(content, encoding=encoding)
        except (OSError, LookupError) as e:
            raise ToolExecutionError(f"Error writing to file: {e}") from e

        return {
            "success": True,
            "filePath": str(path),
            "size": path.stat().st_size,
            "created": not existed,
            "mode": mode,
        }
