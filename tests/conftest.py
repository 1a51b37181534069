"""Shared fixtures: logger reset, isolated workspace, scripted planner and tools."""

from typing import Any, Dict, List, Optional

import pytest

from taskpilot import config
from taskpilot.debug_logger import DebugLogger
from taskpilot.exceptions import PlannerUnavailableError
from taskpilot.execution.events import ExecutionObserver
from taskpilot.llm.planner import Planner, PlannerResponse
from taskpilot.tools.base import Tool, ToolParameter
from taskpilot.tools.registry import ToolRegistry


@pytest.fixture(autouse=True)
def reset_debug_logger():
    """Reset the singleton logger before and after each test."""
    DebugLogger._instance = None
    DebugLogger._loggers = {}
    yield
    instance = DebugLogger._instance
    if instance and instance.enabled:
        instance.close()
    DebugLogger._instance = None
    DebugLogger._loggers = {}


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Point the workspace root and the events file at a temp directory."""
    monkeypatch.setattr(config, "ROOT", tmp_path)
    monkeypatch.setattr(config, "TASKPILOT_DIR", tmp_path / ".taskpilot")
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / ".taskpilot" / "logs")
    monkeypatch.setattr(config, "EVENTS_FILE", tmp_path / ".taskpilot" / "events.jsonl")
    return tmp_path


class FakePlanner(Planner):
    """Planner that replays scripted responses in order.

    Items may be content (str/dict/list), a PlannerResponse, or an exception
    to raise. Running out of responses raises PlannerUnavailableError.
    """

    def __init__(self, responses: Optional[List[Any]] = None, model: str = "gpt-5-mini",
                 token_count: Optional[Dict[str, int]] = None):
        self.responses = list(responses or [])
        self.model = model
        self.token_count = token_count if token_count is not None else {"prompt": 100, "completion": 50}
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, max_tokens=1024, temperature=0.2, format="json", task_type=None):
        self.calls.append({
            "prompt": prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "format": format,
            "task_type": task_type,
        })
        if not self.responses:
            raise PlannerUnavailableError("no scripted response")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, PlannerResponse):
            return item
        return PlannerResponse(
            content=item,
            model_info={"name": self.model, "taskType": task_type},
            token_count=dict(self.token_count),
        )

    @property
    def task_types(self) -> List[Optional[str]]:
        return [call["task_type"] for call in self.calls]


class ScriptedTool(Tool):
    """Tool returning (or raising) scripted outcomes; the last one repeats."""

    description = "Scripted test tool"

    def __init__(self, name: str, outcomes: Optional[List[Any]] = None, required: Optional[List[str]] = None):
        self.name = name
        self.parameters = {param: ToolParameter("string", param, required=True) for param in (required or [])}
        super().__init__()
        self.outcomes = list(outcomes if outcomes is not None else [{"ok": True}])
        self.calls: List[Dict[str, Any]] = []

    def _run(self, params: Dict[str, Any]) -> Any:
        self.calls.append(dict(params))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingObserver(ExecutionObserver):
    def __init__(self):
        self.events: List[tuple] = []

    def on_step_start(self, index, step):
        self.events.append(("start", index, step.description))

    def on_step_success(self, index, step, result):
        self.events.append(("success", index, step.description))

    def on_step_error(self, index, step, error):
        self.events.append(("error", index, error))

    def on_plan_update(self, plan):
        self.events.append(("plan", len(plan.steps)))


@pytest.fixture
def fake_planner():
    """Factory: ``fake_planner([response, ...])``."""
    return FakePlanner


@pytest.fixture
def scripted_tool():
    """Factory: ``scripted_tool(name, outcomes, required)``."""
    return ScriptedTool


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_registry():
    def build(*tools: Tool) -> ToolRegistry:
        return ToolRegistry(list(tools))
    return build
