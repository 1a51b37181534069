import json

from taskpilot.exceptions import PlannerUnavailableError
from taskpilot.execution.validator import PlanValidator, extract_issues_from_errors
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import IssueSeverity


def _plan():
    return Plan(steps=[
        PlanStep("find", "FindFileTool", {"pattern": "*app*"}),
        PlanStep("read", "ReadFileTool", {"filePath": "$STEP[0].matches[0]"}),
    ])


def _validator(planner, make_registry, enabled=True):
    return PlanValidator(planner, make_registry(), enabled=enabled)


def test_disabled_validation_accepts_without_calling_planner(fake_planner, make_registry):
    planner = fake_planner()
    plan = _plan()

    outcome = _validator(planner, make_registry, enabled=False).validate(plan, "read app")

    assert outcome.valid
    assert outcome.plan is plan
    assert planner.calls == []


def test_confident_valid_plan_is_accepted(fake_planner, make_registry):
    planner = fake_planner([{"valid": True, "confidence": 85, "issues": [], "reasoning": "fine"}])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert outcome.valid
    assert [s.description for s in outcome.plan.steps] == ["find", "read"]
    assert outcome.plan.validation_info["optimized"] is False
    assert outcome.plan.validation_info["confidence"] == 85
    assert planner.calls[0]["task_type"] == "validation"
    assert planner.calls[0]["max_tokens"] == 2048
    assert planner.calls[0]["temperature"] == 0.1
    assert '"read app"' in planner.calls[0]["prompt"]


def test_optimized_steps_replace_the_plan(fake_planner, make_registry):
    planner = fake_planner([json.dumps({
        "valid": False,
        "confidence": 65,
        "issues": [{"stepIndex": 0, "severity": "medium", "description": "pattern not recursive"}],
        "optimizedSteps": [{"description": "find recursively", "tool": "FindFileTool", "params": {"pattern": "**/*app*"}}],
        "reasoning": "use recursive glob",
    })])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert outcome.valid
    assert [s.description for s in outcome.plan.steps] == ["find recursively"]
    assert outcome.plan.validation_info["optimized"] is True
    assert outcome.plan.validation_info["issuesFound"] == 1


def test_high_severity_issue_rejects(fake_planner, make_registry):
    planner = fake_planner([{
        "valid": True,
        "confidence": 95,
        "issues": [{"stepIndex": 1, "severity": "high", "description": "reads the wrong file"}],
    }])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert not outcome.valid
    assert outcome.errors == ["Step 2: reads the wrong file"]


def test_low_confidence_without_issues_rejects_with_generic_error(fake_planner, make_registry):
    planner = fake_planner([{"valid": True, "confidence": 50, "issues": []}])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert not outcome.valid
    assert outcome.errors == ["Plan validation failed"]


def test_empty_optimized_steps_are_ignored(fake_planner, make_registry):
    planner = fake_planner([{"valid": True, "confidence": 90, "issues": [], "optimizedSteps": []}])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert outcome.valid
    assert len(outcome.plan.steps) == 2


def test_unparseable_answer_accepts_original_plan(fake_planner, make_registry):
    planner = fake_planner(["this is not json"])
    plan = _plan()

    outcome = _validator(planner, make_registry).validate(plan, "read app")

    assert outcome.valid
    assert outcome.plan is plan


def test_optimized_steps_with_scalar_tags_are_still_usable(fake_planner, make_registry):
    planner = fake_planner([{
        "valid": True,
        "confidence": 75,
        "issues": "none",
        "optimizedSteps": [{
            "description": "find recursively",
            "tool": "FindFileTool",
            "params": {"pattern": "**/*app*"},
            "produces": 5,
            "consumes": "file",
        }],
    }])

    outcome = _validator(planner, make_registry).validate(_plan(), "read app")

    assert outcome.valid
    step = outcome.plan.steps[0]
    assert step.description == "find recursively"
    assert step.produces == []
    assert step.consumes == ["file"]
    assert outcome.plan.validation_info["issuesFound"] == 0


def test_malformed_optimized_step_accepts_original_plan(fake_planner, make_registry):
    planner = fake_planner([{"valid": True, "confidence": 90, "optimizedSteps": ["not a step"]}])
    plan = _plan()

    outcome = _validator(planner, make_registry).validate(plan, "read app")

    assert outcome.valid
    assert outcome.plan is plan


def test_planner_error_accepts_original_plan(fake_planner, make_registry):
    planner = fake_planner([PlannerUnavailableError("down")])
    plan = _plan()

    outcome = _validator(planner, make_registry).validate(plan, "read app")

    assert outcome.valid
    assert outcome.plan is plan


def test_extract_issues_from_errors():
    issues = extract_issues_from_errors([
        "Step 3: critical parameter missing",
        "Step 1: minor FindFileTool pattern issue",
        "Step 2: use $STEP[0].paths[0]",
        "something odd",
    ])

    assert [i.step_index for i in issues] == [2, 0, 1, 0]
    assert [i.severity for i in issues] == [
        IssueSeverity.HIGH, IssueSeverity.LOW, IssueSeverity.MEDIUM, IssueSeverity.MEDIUM,
    ]
    assert issues[0].suggestion == "Check that all required parameters are provided"
    assert issues[1].suggestion == "Use recursive patterns like **/*filename* for FindFileTool"
    assert issues[2].suggestion == "Change variable references from $STEP[n].paths[0] to $STEP[n].matches[0]"
    assert issues[3].suggestion == "Review and correct the plan structure"
