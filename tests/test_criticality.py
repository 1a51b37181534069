from taskpilot.execution.criticality import CriticalityAnalyzer
from taskpilot.execution.retry import RetryController
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import StepResult


def _step(description, tool="AnalyzeCodeTool", **kwargs):
    return PlanStep(description=description, tool=tool, params=kwargs.pop("params", {}), **kwargs)


def _failed(step):
    return [StepResult(success=False, step=step, error="boom")]


def test_steps_are_critical_unless_marked_otherwise():
    analyzer = CriticalityAnalyzer()

    assert analyzer.is_critical(_step("a")) is True
    assert analyzer.is_critical(_step("b", is_critical=False)) is False
    assert analyzer.is_critical(_step("c", is_critical=True)) is True


def test_success_always_continues():
    read = _step("read", "ReadFileTool")
    plan = Plan(steps=[read, _step("write", "WriteFileTool")])

    assert CriticalityAnalyzer().can_continue(read, [StepResult(success=True, step=read)], plan)


def test_failed_read_blocks_later_write():
    read = _step("read", "ReadFileTool")
    plan = Plan(steps=[read, _step("write", "WriteFileTool")])

    assert not CriticalityAnalyzer().can_continue(read, _failed(read), plan)


def test_failed_read_without_writers_continues():
    read = _step("read", "ReadFileTool")
    plan = Plan(steps=[read, _step("find", "FindFileTool")])

    assert CriticalityAnalyzer().can_continue(read, _failed(read), plan)


def test_declared_dependency_blocks():
    first = _step("prepare")
    plan = Plan(steps=[first, _step("use", depends_on=["prepare"])])

    assert not CriticalityAnalyzer().can_continue(first, _failed(first), plan)


def test_uniquely_produced_tag_blocks_consumer():
    producer = _step("build", produces=["artifact"])
    plan = Plan(steps=[producer, _step("deploy", consumes=["artifact"])])

    assert not CriticalityAnalyzer().can_continue(producer, _failed(producer), plan)


def test_tag_with_alternative_producer_does_not_block():
    producer = _step("build", produces=["artifact"])
    plan = Plan(steps=[
        producer,
        _step("build again", produces=["artifact"]),
        _step("deploy", consumes=["artifact"]),
    ])

    assert CriticalityAnalyzer().can_continue(producer, _failed(producer), plan)


def test_failed_search_command_blocks_later_command():
    search = _step("search", "ExecuteCommandTool", params={"command": "grep -rn TODO src"})
    plan = Plan(steps=[search, _step("count", "ExecuteCommandTool", params={"command": "wc -l out.txt"})])

    assert not CriticalityAnalyzer().can_continue(search, _failed(search), plan)


def test_failed_non_search_command_continues():
    listing = _step("list", "ExecuteCommandTool", params={"command": "ls -la"})
    plan = Plan(steps=[listing, _step("count", "ExecuteCommandTool", params={"command": "wc -l out.txt"})])

    assert CriticalityAnalyzer().can_continue(listing, _failed(listing), plan)


def test_retry_copy_is_located_by_original_description():
    read = _step("read", "ReadFileTool")
    plan = Plan(steps=[read, _step("write", "WriteFileTool")])
    retry_copy = RetryController().modify(read, "timeout")

    assert not CriticalityAnalyzer().can_continue(retry_copy, _failed(retry_copy), plan)
