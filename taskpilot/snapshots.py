#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""File snapshots taken around shell commands, for change auditing."""

import hashlib
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from taskpilot.debug_logger import get_logger


@dataclass
class FileSnapshot:
    path: str
    content: str
    timestamp: str
    hash: str


@dataclass
class FileDiff:
    file_path: str
    has_changes: bool
    before: Optional[FileSnapshot] = None
    after: Optional[FileSnapshot] = None

    def to_dict(self) -> Dict[str, object]:
        return {"filePath": self.file_path, "hasChanges": self.has_changes}


def _hash(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def _read_snapshot(path: str) -> Optional[FileSnapshot]:
    try:
        content = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    return FileSnapshot(path=path, content=content, timestamp=datetime.now().isoformat(), hash=_hash(content))


@dataclass
class FileSnapshotManager:
    """Stores named snapshots of file contents and compares them."""

    snapshots: Dict[str, Dict[str, FileSnapshot]] = field(default_factory=dict)

    def create_snapshot(self, paths: Iterable[str], snapshot_id: Optional[str] = None) -> str:
        """Snapshot every readable file in ``paths``; missing files are skipped."""
        if snapshot_id is None:
            snapshot_id = f"snap-{int(time.time() * 1000)}"
            while snapshot_id in self.snapshots:
                snapshot_id += "-1"

        entries: Dict[str, FileSnapshot] = {}
        for path in paths:
            snapshot = _read_snapshot(str(path))
            if snapshot is not None:
                entries[snapshot.path] = snapshot

        self.snapshots[snapshot_id] = entries
        get_logger().log("snapshots", "SNAPSHOT_CREATED", {"id": snapshot_id, "files": len(entries)}, "DEBUG")
        return snapshot_id

    def get_snapshot(self, snapshot_id: str) -> Optional[Dict[str, FileSnapshot]]:
        return self.snapshots.get(snapshot_id)

    def compare_snapshots(self, before_id: str, after_id: Optional[str] = None) -> List[FileDiff]:
        """Diff two snapshots, or a snapshot against the files on disk now.

        Raises:
            KeyError: if a snapshot id is unknown
        """
        before = self.snapshots[before_id]
        if after_id is not None:
            after = self.snapshots[after_id]
        else:
            after = {}
            for path in before:
                snapshot = _read_snapshot(path)
                if snapshot is not None:
                    after[path] = snapshot

        diffs: List[FileDiff] = []
        for path in sorted(set(before) | set(after)):
            snap_before = before.get(path)
            snap_after = after.get(path)
            changed = (
                snap_before is None
                or snap_after is None
                or snap_before.hash != snap_after.hash
            )
            diffs.append(FileDiff(file_path=path, has_changes=changed, before=snap_before, after=snap_after))
        return diffs

    def changed_files(self, before_id: str, after_id: Optional[str] = None) -> List[str]:
        return [diff.file_path for diff in self.compare_snapshots(before_id, after_id) if diff.has_changes]

    def discard(self, *snapshot_ids: str) -> None:
        for snapshot_id in snapshot_ids:
            self.snapshots.pop(snapshot_id, None)

    def clear(self) -> None:
        self.snapshots.clear()
