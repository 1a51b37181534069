import json
from datetime import datetime

from taskpilot import config
from taskpilot.event_store import EventStore, InMemoryEventStore, create_event_store


def test_jsonl_store_appends_and_reads_newest_first(workspace):
    store = EventStore()

    store.save_event({"type": "userRequest", "input": "first", "success": True})
    store.save_event({"type": "tool_start", "tool": "ReadFileTool"})
    store.save_event({"type": "userRequest", "input": "second", "success": False})

    lines = config.EVENTS_FILE.read_text().splitlines()
    assert len(lines) == 3
    assert json.loads(lines[0])["input"] == "first"

    requests = store.get_events(type="userRequest")
    assert [e["input"] for e in requests] == ["second", "first"]
    assert all("timestamp" in e for e in requests)
    assert [e["input"] for e in store.get_events(type="userRequest", success=True)] == ["first"]
    assert len(store.get_events(limit=1)) == 1


def test_corrupt_lines_are_skipped(tmp_path):
    path = tmp_path / "events.jsonl"
    path.write_text('{"type": "a"}\nnot json\n\n{"type": "b"}\n')

    events = EventStore(path).get_events()

    assert [e["type"] for e in events] == ["b", "a"]


def test_missing_file_yields_no_events(tmp_path):
    store = EventStore(tmp_path / "none.jsonl")

    assert store.get_events() == []
    store.clear()


def test_time_window_filters():
    store = InMemoryEventStore()
    store.save_event({"type": "x", "timestamp": "2026-01-01T10:00:00"})
    store.save_event({"type": "x", "timestamp": "2026-01-02T10:00:00"})
    store.save_event({"type": "x"})

    since = datetime(2026, 1, 1, 12)
    until = datetime(2026, 1, 3)

    assert [e["timestamp"] for e in store.get_events(since=since, until=until)] == ["2026-01-02T10:00:00"]


def test_create_event_store_honours_persistence(workspace):
    assert isinstance(create_event_store(persist=False), InMemoryEventStore)
    assert isinstance(create_event_store(persist=True), EventStore)
    assert create_event_store(persist=True).path == config.EVENTS_FILE
