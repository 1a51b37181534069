#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Event persistence: completed requests and tool lifecycle events.

Events are appended to a JSONL file, one JSON object per line.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from taskpilot import config
from taskpilot.debug_logger import get_logger


def _event_time(event: Dict[str, Any]) -> Optional[datetime]:
    raw = event.get("timestamp")
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def filter_events(
    events: List[Dict[str, Any]],
    type: Optional[str] = None,
    success: Optional[bool] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    """Apply event filters and return newest-first, at most ``limit`` events."""
    selected = []
    for event in reversed(events):
        if type is not None and event.get("type") != type:
            continue
        if success is not None and event.get("success") != success:
            continue
        if since is not None or until is not None:
            when = _event_time(event)
            if when is None:
                continue
            if since is not None and when < since:
                continue
            if until is not None and when > until:
                continue
        selected.append(event)
        if limit and len(selected) >= limit:
            break
    return selected


class InMemoryEventStore:
    """Event store kept in process memory."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def save_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(event)
        record.setdefault("timestamp", datetime.now().isoformat())
        self.events.append(record)
        return record

    def get_events(self, type: Optional[str] = None, success: Optional[bool] = None,
                   since: Optional[datetime] = None, until: Optional[datetime] = None,
                   limit: int = 100) -> List[Dict[str, Any]]:
        return filter_events(self.events, type, success, since, until, limit)

    def clear(self) -> None:
        self.events.clear()


class EventStore:
    """Append-only JSONL event store."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else config.EVENTS_FILE

    def save_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Append an event, stamping it with the current time if needed.

        Raises:
            OSError: if the events file cannot be written
        """
        record = dict(event)
        record.setdefault("timestamp", datetime.now().isoformat())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")
        return record

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        events = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    get_logger().warning("Skipping corrupt event line %d in %s", line_no, self.path)
        return events

    def get_events(self, type: Optional[str] = None, success: Optional[bool] = None,
                   since: Optional[datetime] = None, until: Optional[datetime] = None,
                   limit: int = 100) -> List[Dict[str, Any]]:
        """Return matching events, newest first."""
        return filter_events(self._load(), type, success, since, until, limit)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def create_event_store(persist: Optional[bool] = None):
    """JSONL store when persistence is enabled, in-memory store otherwise."""
    persist = config.PERSIST_EVENTS if persist is None else persist
    return EventStore() if persist else InMemoryEventStore()
