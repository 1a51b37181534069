import json

import pytest

from taskpilot import config, main as cli
from taskpilot._version import TASKPILOT_VERSION


@pytest.fixture(autouse=True)
def restore_model_settings(monkeypatch):
    monkeypatch.setattr(config, "LLM_PROVIDER", config.LLM_PROVIDER)
    monkeypatch.setattr(config, "OLLAMA_MODEL", config.OLLAMA_MODEL)
    monkeypatch.setattr(config, "OPENAI_MODEL", config.OPENAI_MODEL)
    monkeypatch.setattr(config, "PERSIST_EVENTS", True)


def _use_planner(monkeypatch, planner):
    monkeypatch.setattr(cli, "LLMPlanner", lambda provider: planner)


def test_version_output(capsys):
    assert cli.main(["--version", "--provider", "openai", "--model", "gpt-5-mini"]) == 0

    out = capsys.readouterr().out
    assert f"Version:          {TASKPILOT_VERSION}" in out
    assert "Provider:         openai" in out
    assert "Model:            gpt-5-mini" in out


def test_missing_request_is_an_error(capsys):
    assert cli.main([]) == 1

    assert "a request is required" in capsys.readouterr().err


def test_successful_request_prints_summary(monkeypatch, capsys, fake_planner, workspace):
    (workspace / "notes.txt").write_text("hello")
    planner = fake_planner([{"plan": {"steps": [
        {"description": "Find notes", "tool": "FindFileTool", "params": {"pattern": "**/notes.txt"}},
        {"description": "Read notes", "tool": "ReadFileTool", "params": {"filePath": "$STEP[0].matches[0]"}},
    ]}}])
    _use_planner(monkeypatch, planner)

    code = cli.main(["show", "the", "notes", "--no-validation"])

    out = capsys.readouterr().out
    assert code == 0
    assert "✓ 1. [FindFileTool] Find notes" in out
    assert "✓ 2. [ReadFileTool] Read notes" in out
    assert "Completed 2 steps successfully and 0 steps failed." in out
    assert "show the notes" in planner.calls[0]["prompt"]


def test_failed_request_exits_non_zero_and_json(monkeypatch, capsys, fake_planner):
    planner = fake_planner([
        {"plan": {"steps": [{"description": "Read it", "tool": "ReadFileTool", "params": {"filePath": "nope.txt"}}]}},
    ])
    _use_planner(monkeypatch, planner)

    code = cli.main(["read", "nope", "--no-validation", "--no-replanning", "--json"])

    data = json.loads(capsys.readouterr().out)
    assert code == 1
    assert data["success"] is False
    assert data["stoppedAtStep"] == "Read it"
    assert data["stopReason"].startswith("Critical error: Error reading file")
    assert data["replanCount"] == 0


def test_events_listing(monkeypatch, capsys, fake_planner):
    _use_planner(monkeypatch, fake_planner([
        {"plan": {"steps": [{"description": "Find", "tool": "FindFileTool", "params": {"pattern": "*.md"}}]}},
    ]))
    cli.main(["find", "docs", "--no-validation"])
    capsys.readouterr()

    assert cli.main(["--events", "50"]) == 0

    events = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert events[0]["type"] == "userRequest"
    assert events[0]["input"] == "find docs"
    assert {"tool_start", "tool_success"} <= {e["type"] for e in events}


def test_editor_file_becomes_context(monkeypatch, capsys, fake_planner, workspace):
    source = workspace / "app.py"
    source.write_text("print('hi')\n")
    planner = fake_planner([
        {"plan": {"steps": [{"description": "Find", "tool": "FindFileTool", "params": {"pattern": "*.py"}}]}},
    ])
    _use_planner(monkeypatch, planner)

    cli.main(["explain", "--file", str(source), "--selection", "print", "--no-validation"])

    prompt = planner.calls[0]["prompt"]
    assert f"File: {source.resolve()}" in prompt
    assert "Language: python" in prompt
    assert "Selected text: Yes (length: 5)" in prompt
