from pathlib import Path

from taskpilot.debug_logger import DebugLogger, get_logger, is_debug_enabled, log_function, prune_old_logs


def test_plain_logging_helpers_write_when_enabled(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    logger.info("info message")
    logger.warning("warn %s", "message")
    logger.error("error message")
    logger.debug("debug message")
    logger.close()

    log_file = logger.log_file_path
    assert log_file is not None
    assert log_file.exists()

    content = log_file.read_text()
    assert "taskpilot.general" in content
    assert "info message" in content
    assert "warn message" in content
    assert "error message" in content
    assert "debug message" in content
    assert "DEBUG_SESSION_END" in content


def test_plain_logging_helpers_are_noops_when_disabled(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=False, log_dir=tmp_path)

    logger.info("info message")
    logger.log("planner", "PLAN_ACCEPTED", {"steps": 2})
    logger.log_step_status(0, "read", "running")

    assert logger.log_file_path is None
    assert not any(tmp_path.iterdir())
    assert not is_debug_enabled()


def test_structured_events(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    logger.log_workflow_phase("planning", {"attempt": 1})
    logger.log_step_status(2, "Write file", "failed", {"error": "denied"})
    logger.log_tool_execution("ReadFileTool", {"filePath": "a.py"}, error="File not found")
    logger.log_llm_request("gpt-5-mini", "plan this", {"task_type": "planning"})
    logger.log_error("orchestrator", ValueError("bad"), {"input": "x"})
    logger.close()

    content = logger.log_file_path.read_text()
    assert "taskpilot.orchestrator" in content
    assert "[WORKFLOW_PHASE]" in content
    assert '"status": "failed"' in content
    assert "[TOOL_EXECUTION]" in content
    assert '"error_type": "ValueError"' in content
    assert "LLM_REQUEST" in content


def test_log_function_decorator(tmp_path: Path):
    DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    @log_function("planner")
    def plan(request):
        return request.upper()

    assert plan("hello") == "HELLO"
    get_logger().close()

    content = get_logger().log_file_path.read_text()
    assert "FUNCTION_CALL" in content
    assert '"function": "plan"' in content


def test_get_logger_returns_singleton():
    assert get_logger() is get_logger()
    assert get_logger().enabled is False


def test_prune_old_logs_keeps_newest(tmp_path: Path):
    import os

    for index in range(4):
        path = tmp_path / f"taskpilot_debug_{index}.log"
        path.write_text(str(index))
        os.utime(path, (index, index))

    prune_old_logs(tmp_path, keep=2)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["taskpilot_debug_2.log", "taskpilot_debug_3.log"]
