import pytest

from taskpilot.event_store import InMemoryEventStore
from taskpilot.exceptions import ToolExecutionError
from taskpilot.execution.orchestrator import Orchestrator, OrchestratorConfig
from taskpilot.models.context import EditorContext
from taskpilot.tools.command_runner import ExecuteCommandTool


REPLAN_YES = {"shouldReplan": True, "confidence": 80, "reasoning": "try another way"}
REPLAN_NO = {"shouldReplan": False, "confidence": 90, "reasoning": "good enough"}


def _steps(*tools):
    return [
        {"description": f"step {i} ({tool})", "tool": tool, "params": {}, "isCritical": False}
        for i, tool in enumerate(tools)
    ]


def _plan(*tools):
    return {"plan": {"steps": _steps(*tools)}}


def _replan(*tools):
    return {"plan": {"steps": _steps(*tools), "replanningReason": "retry", "learningsApplied": ["x"]}}


@pytest.fixture
def tools(scripted_tool, make_registry):
    good = scripted_tool("Good", [{"output": "fine"}])
    bad = scripted_tool("Bad", [ToolExecutionError("permission denied")])
    return make_registry(good, bad)


def _orchestrator(planner, registry, store=None, observers=None, **config):
    config.setdefault("intelligent_validation", False)
    return Orchestrator(
        planner,
        registry=registry,
        event_store=store if store is not None else InMemoryEventStore(),
        config=OrchestratorConfig(**config),
        observers=observers,
    )


def test_successful_run_records_user_request(fake_planner, tools):
    store = InMemoryEventStore()
    planner = fake_planner([_plan("Good", "Good")])

    result = _orchestrator(planner, tools, store).orchestrate("do it", {"filePath": "a.py"})

    assert result.success
    assert result.replan_count == 0
    assert len(result.results) == 2
    assert result.reflection.successful_steps == 2
    assert planner.task_types == ["planning"]

    events = store.get_events(type="userRequest")
    assert len(events) == 1
    event = events[0]
    for key in ("input", "plan", "results", "reflection", "timestamp", "success",
                "stoppedAtStep", "stopReason", "replanCount", "modelCost"):
        assert key in event
    assert event["input"] == "do it"
    assert event["success"] is True
    assert event["modelCost"]["model"] == "gpt-5-mini"


def test_half_failed_run_is_replanned_once(fake_planner, tools):
    planner = fake_planner([
        _plan("Good", "Bad", "Good", "Bad", "Good", "Bad", "Good", "Bad", "Good", "Bad"),
        REPLAN_YES,
        _replan("Good"),
    ])

    result = _orchestrator(planner, tools).orchestrate("do it")

    assert result.success
    assert result.replan_count == 1
    assert len(result.results) == 1
    assert result.plan.replanning_info["attempt"] == 1
    assert result.plan.replanning_info["previousFailures"] == 5
    assert result.model_cost["model"] == "gpt-5-mini"
    assert result.model_cost["inputTokens"] == 100
    assert planner.task_types == ["planning", "evaluation", "replanning"]


def test_malformed_evaluation_keeps_the_run_results(fake_planner, tools):
    planner = fake_planner([
        _plan("Good", "Bad"),
        {"shouldReplan": True, "confidence": 80, "suggestedImprovements": 3},
        {"plan": {"steps": _steps("Good"), "learningsApplied": 7}},
    ])

    result = _orchestrator(planner, tools).orchestrate("do it")

    assert result.error is None
    assert result.success
    assert result.replan_count == 1
    assert result.reflection is not None
    assert result.plan.replanning_info["learningsApplied"] == []


def test_replanning_is_bounded(fake_planner, tools):
    planner = fake_planner([
        _plan("Bad"),
        REPLAN_YES, _replan("Bad"),
        REPLAN_YES, _replan("Bad"),
        REPLAN_YES, _replan("Good"),
    ])

    result = _orchestrator(planner, tools, max_replanning=2).orchestrate("do it")

    assert not result.success
    assert result.replan_count == 2
    assert planner.task_types == ["planning", "evaluation", "replanning", "evaluation", "replanning"]


def test_zero_replanning_budget_skips_evaluation(fake_planner, tools):
    planner = fake_planner([_plan("Bad")])

    result = _orchestrator(planner, tools, max_replanning=0).orchestrate("do it")

    assert not result.success
    assert planner.task_types == ["planning"]


def test_negative_evaluation_stops(fake_planner, tools):
    planner = fake_planner([_plan("Good", "Bad"), REPLAN_NO])

    result = _orchestrator(planner, tools).orchestrate("do it")

    assert not result.success
    assert result.replan_count == 0
    assert [r.success for r in result.results] == [True, False]
    assert result.reflection.failed_steps == 1


def test_replanning_error_keeps_last_attempt(fake_planner, tools):
    planner = fake_planner([_plan("Bad"), REPLAN_YES, "garbage"])

    result = _orchestrator(planner, tools).orchestrate("do it")

    assert not result.success
    assert result.replan_count == 0
    assert result.results[0].error == "permission denied"
    assert result.error is None


def test_planner_outage_still_returns_a_result(fake_planner, tools):
    store = InMemoryEventStore()

    result = _orchestrator(fake_planner([]), tools, store).orchestrate("explain this")

    assert not result.success
    assert result.plan.is_fallback
    assert result.stop_reason == "Tool 'ExplainCodeTool' is not available"
    assert result.replan_count == 0
    assert len(store.get_events(type="userRequest")) == 1


def test_unexpected_error_is_reported(fake_planner, tools, monkeypatch):
    store = InMemoryEventStore()
    orchestrator = _orchestrator(fake_planner(), tools, store)

    def explode(user_input, context):
        raise RuntimeError("planner crashed")

    monkeypatch.setattr(orchestrator.task_planner, "plan_task", explode)

    result = orchestrator.orchestrate("do it")

    assert not result.success
    assert result.error == "planner crashed"
    assert result.to_dict()["error"] == "planner crashed"
    assert store.get_events() == []


def test_observers_see_plan_updates(fake_planner, tools, observer):
    planner = fake_planner([_plan("Bad"), REPLAN_YES, _replan("Good", "Good")])

    _orchestrator(planner, tools, observers=[observer]).orchestrate("do it")

    assert [e for e in observer.events if e[0] == "plan"] == [("plan", 1), ("plan", 2)]


def test_editor_context_reaches_the_planning_prompt(fake_planner, tools):
    planner = fake_planner([_plan("Good")])
    context = EditorContext(file_path="/w/app.py", language="python", selection="abc")

    _orchestrator(planner, tools).orchestrate("do it", context)

    prompt = planner.calls[0]["prompt"]
    assert "File: /w/app.py" in prompt
    assert "Language: python" in prompt
    assert "Selected text: Yes (length: 3)" in prompt


def test_result_to_dict_uses_camel_case(fake_planner, tools):
    result = _orchestrator(fake_planner([_plan("Good")]), tools).orchestrate("do it")

    data = result.to_dict()

    assert set(data) >= {"success", "results", "reflection", "stoppedAtStep", "stopReason", "replanCount", "modelCost"}
    assert data["reflection"]["status"] == "success"


def test_config_clamps_invalid_values():
    settings = OrchestratorConfig(max_replanning=-3, max_planning_attempts=0)

    assert settings.max_replanning == 0
    assert settings.max_planning_attempts == 1


def test_config_defaults_come_from_environment(monkeypatch):
    from taskpilot import config

    monkeypatch.setattr(config, "MAX_REPLANNING", 7)
    monkeypatch.setattr(config, "AUTO_REPLANNING", False)

    settings = OrchestratorConfig()

    assert settings.max_replanning == 7
    assert settings.auto_replanning is False


def test_default_orchestrator_audits_command_file_changes(fake_planner, workspace, monkeypatch):
    target = workspace / "data.txt"
    target.write_text("before", encoding="utf-8")

    def fake_run(self, params):
        target.write_text("after", encoding="utf-8")
        return {"success": True, "output": "", "exitCode": 0}

    monkeypatch.setattr(ExecuteCommandTool, "_run", fake_run)
    planner = fake_planner([{"plan": {"steps": [
        {"description": "Touch", "tool": "ExecuteCommandTool", "params": {"command": "touch data.txt"}},
    ]}}])
    orchestrator = Orchestrator(
        planner,
        event_store=InMemoryEventStore(),
        config=OrchestratorConfig(intelligent_validation=False),
    )

    result = orchestrator.orchestrate("touch the data file")

    assert result.success
    assert result.results[0].result["fileChanges"] == [str(target)]
    assert orchestrator.engine.snapshot_manager.snapshots == {}
