import pytest

from taskpilot.exceptions import PlannerUnavailableError, ReplanningError
from taskpilot.execution.reflection import ReflectionEngine
from taskpilot.execution.replanning import ReplanningController, failure_rate
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import StepResult


def _results(ok, failed):
    results = [StepResult(True, PlanStep(f"ok {i}", "ReadFileTool"), {"content": "x"}) for i in range(ok)]
    results += [
        StepResult(False, PlanStep(f"bad {i}", "WriteFileTool"), error=f"error {i}")
        for i in range(failed)
    ]
    return results


def _attempt(ok, failed, stopped=None, reason=None):
    plan = Plan(steps=[r.step for r in _results(ok, failed)])
    results = _results(ok, failed)
    return plan, results, ReflectionEngine().reflect(plan, results, stopped, reason)


def _controller(planner, make_registry, auto=True):
    return ReplanningController(planner, make_registry(), auto_replanning=auto)


def test_failure_rate():
    assert failure_rate([]) == 0.0
    assert failure_rate(_results(1, 3)) == 0.75


def test_disabled_auto_replanning_never_replans(fake_planner, make_registry):
    planner = fake_planner()
    plan, results, reflection = _attempt(0, 4)

    evaluation = _controller(planner, make_registry, auto=False).evaluate("task", plan, results, reflection)

    assert not evaluation.should_replan
    assert evaluation.reasoning == "Auto-replanning is disabled in settings"
    assert evaluation.confidence == 100
    assert planner.calls == []


def test_confident_recommendation_is_followed(fake_planner, make_registry):
    planner = fake_planner([{
        "shouldReplan": True,
        "confidence": 80,
        "reasoning": "wrong file",
        "failureType": "systematic",
        "suggestedImprovements": ["find the file first"],
    }])
    plan, results, reflection = _attempt(5, 5, "bad 0", "Critical error: error 0")

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert evaluation.should_replan
    assert evaluation.failure_type == "systematic"
    assert evaluation.suggested_improvements == ["find the file first"]
    call = planner.calls[0]
    assert call["task_type"] == "evaluation"
    assert call["max_tokens"] == 1024
    assert "- Total steps: 10" in call["prompt"]
    assert "- Failed steps: 5" in call["prompt"]
    assert "- Stopped at: bad 0" in call["prompt"]
    assert '"hasResult": true' in call["prompt"]


def test_low_confidence_recommendation_is_ignored(fake_planner, make_registry):
    planner = fake_planner([{"shouldReplan": True, "confidence": 59, "reasoning": "maybe"}])
    plan, results, reflection = _attempt(1, 1)

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert not evaluation.should_replan
    assert evaluation.confidence == 59


@pytest.mark.parametrize("ok, failed, expected", [(6, 4, True), (7, 3, False)])
def test_unparseable_evaluation_uses_lower_threshold(fake_planner, make_registry, ok, failed, expected):
    planner = fake_planner(["I think you should replan"])
    plan, results, reflection = _attempt(ok, failed)

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert evaluation.should_replan is expected
    assert evaluation.confidence == 50
    assert evaluation.reasoning == "Evaluation parsing failed, using simple failure rate heuristic"


@pytest.mark.parametrize("ok, failed, expected", [(4, 6, True), (6, 4, False)])
def test_failed_evaluation_call_uses_higher_threshold(fake_planner, make_registry, ok, failed, expected):
    planner = fake_planner([PlannerUnavailableError("down")])
    plan, results, reflection = _attempt(ok, failed)

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert evaluation.should_replan is expected
    assert evaluation.confidence == 30
    assert evaluation.reasoning == f"Evaluation failed, using fallback logic. Failure rate: {failed * 10}%"


def test_replan_builds_annotated_plan(fake_planner, make_registry):
    planner = fake_planner([{"plan": {
        "steps": [{"description": "Find file", "tool": "FindFileTool", "params": {"pattern": "**/a.py"}}],
        "replanningReason": "locate the file before writing",
        "learningsApplied": ["verify paths"],
    }}])
    plan, results, reflection = _attempt(1, 2, "bad 0", "Critical error: error 0")

    new_plan = _controller(planner, make_registry).replan("task", plan, results, reflection, 0)

    assert [s.tool for s in new_plan.steps] == ["FindFileTool"]
    assert new_plan.replanning_info == {
        "attempt": 1,
        "reason": "locate the file before writing",
        "learningsApplied": ["verify paths"],
        "previousFailures": 2,
    }
    assert new_plan.model_info["taskType"] == "replanning"
    call = planner.calls[0]
    assert call["max_tokens"] == 2048
    assert call["temperature"] == 0.3
    assert "This is replanning attempt #1." in call["prompt"]
    assert "- Successful steps: 1/3" in call["prompt"]
    assert '"error": "error 1"' in call["prompt"]
    assert "ok 0" in call["prompt"]


def test_failure_analysis_lists_only_failed_results(fake_planner, make_registry):
    controller = _controller(fake_planner(), make_registry)
    plan, results, reflection = _attempt(2, 1)

    prompt = controller.build_replanning_prompt("task", plan, results, reflection, 3)
    analysis = prompt.split("DETAILED FAILURE ANALYSIS:")[1].split("AVAILABLE TOOLS:")[0]

    assert '"bad 0"' in analysis
    assert '"ok 0"' not in analysis
    assert "attempt #3" in prompt


def test_invalid_replan_structure_raises(fake_planner, make_registry):
    planner = fake_planner([{"steps": [{"description": "no wrapper", "tool": "T"}]}])
    plan, results, reflection = _attempt(0, 1)

    with pytest.raises(ReplanningError, match="Invalid replan structure"):
        _controller(planner, make_registry).replan("task", plan, results, reflection, 0)


def test_unparseable_replan_raises(fake_planner, make_registry):
    planner = fake_planner(["not json at all"])
    plan, results, reflection = _attempt(0, 1)

    with pytest.raises(ReplanningError, match="Failed to parse replanning result"):
        _controller(planner, make_registry).replan("task", plan, results, reflection, 0)


def test_planner_outage_during_replan_raises(fake_planner, make_registry):
    planner = fake_planner([PlannerUnavailableError("down")])
    plan, results, reflection = _attempt(0, 1)

    with pytest.raises(ReplanningError):
        _controller(planner, make_registry).replan("task", plan, results, reflection, 2)


def test_scalar_fields_in_evaluation_do_not_break_the_decision(fake_planner, make_registry):
    planner = fake_planner([{
        "shouldReplan": True,
        "confidence": 80,
        "failureType": 2,
        "suggestedImprovements": 3,
    }])
    plan, results, reflection = _attempt(1, 1)

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert evaluation.should_replan
    assert evaluation.failure_type == "2"
    assert evaluation.suggested_improvements == []


def test_non_numeric_confidence_uses_lower_threshold(fake_planner, make_registry):
    planner = fake_planner([{"shouldReplan": True, "confidence": {"value": 90}}])
    plan, results, reflection = _attempt(6, 4)

    evaluation = _controller(planner, make_registry).evaluate("task", plan, results, reflection)

    assert evaluation.should_replan
    assert evaluation.confidence == 50


def test_replan_ignores_scalar_learnings(fake_planner, make_registry):
    planner = fake_planner([{"plan": {
        "steps": [{"description": "Find file", "tool": "FindFileTool", "params": {"pattern": "**/a.py"}}],
        "learningsApplied": 7,
    }}])
    plan, results, reflection = _attempt(0, 1)

    new_plan = _controller(planner, make_registry).replan("task", plan, results, reflection, 0)

    assert new_plan.replanning_info["learningsApplied"] == []
    assert new_plan.replanning_info["reason"] is None


def test_replan_records_model_cost(fake_planner, make_registry):
    planner = fake_planner([{"plan": {"steps": [{"description": "Find", "tool": "FindFileTool"}]}}])
    plan, results, reflection = _attempt(0, 1)

    new_plan = _controller(planner, make_registry).replan("task", plan, results, reflection, 0)

    assert new_plan.model_cost["model"] == "gpt-5-mini"
    assert new_plan.model_cost["inputTokens"] == 100
    assert new_plan.model_cost["outputTokens"] == 50
