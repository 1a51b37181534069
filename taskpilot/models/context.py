#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Editor/session context passed into an orchestration run."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from taskpilot.tools.file_ops import detect_language


@dataclass
class EditorContext:
    """What the user currently has open: file path, file content, selection."""

    file_path: Optional[str] = None
    content: Optional[str] = None
    selection: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_context(cls, context: Optional[Dict[str, Any]]) -> 'EditorContext':
        context = context or {}
        return cls(
            file_path=context.get("filePath") or context.get("file_path"),
            content=context.get("content"),
            selection=context.get("selection") or context.get("selectedText"),
            language=context.get("language"),
        )

    @classmethod
    def from_file(cls, path: str, selection: Optional[str] = None) -> 'EditorContext':
        """Build a context for a file on disk, reading its content."""
        file_path = Path(path).expanduser().resolve()
        content = None
        if file_path.is_file():
            content = file_path.read_text(encoding="utf-8", errors="replace")
        return cls(
            file_path=str(file_path),
            content=content,
            selection=selection,
            language=detect_language(file_path) if file_path.suffix else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.file_path:
            data["filePath"] = self.file_path
        if self.content is not None:
            data["content"] = self.content
        if self.selection:
            data["selection"] = self.selection
        if self.language:
            data["language"] = self.language
        return data
