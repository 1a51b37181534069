#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Sequential plan execution.

For each step the engine dispatches the tool, checks required parameters,
resolves step references, runs the tool and records a StepResult. Tool
failures never escape ``execute``: they become failed results, optionally
after one retry, and criticality decides whether the loop halts.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from taskpilot import config
from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import MissingParameterError, ToolNotFoundError
from taskpilot.execution.criticality import CriticalityAnalyzer
from taskpilot.execution.events import ExecutionObserver, ObserverGroup
from taskpilot.execution.retry import RetryController
from taskpilot.execution.variables import FILE_PATH_KEYS, VariableResolver
from taskpilot.models.context import EditorContext
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import StepResult
from taskpilot.snapshots import FileSnapshotManager
from taskpilot.tools.base import Tool, check_required_params
from taskpilot.tools.file_ops import resolve_path
from taskpilot.tools.find_file import iter_workspace_files
from taskpilot.tools.registry import ToolRegistry


COMMAND_TOOL = "ExecuteCommandTool"
FIND_TOOL = "FindFileTool"
# Tools whose path may legitimately not exist yet
PATH_CREATING_TOOLS = {"WriteFileTool"}

DEPENDENT_STEPS_REASON = "Subsequent steps depend on the success of this step"


@dataclass
class ExecutionOutcome:
    """Results of one execution attempt."""

    success: bool
    results: List[StepResult] = field(default_factory=list)
    stopped_at_step: Optional[str] = None
    stop_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "results": [result.to_dict() for result in self.results],
            "stoppedAtStep": self.stopped_at_step,
            "stopReason": self.stop_reason,
        }


class ExecutionEngine:
    """Runs plan steps in order against a tool registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        resolver: Optional[VariableResolver] = None,
        criticality: Optional[CriticalityAnalyzer] = None,
        retry: Optional[RetryController] = None,
        snapshot_manager: Optional[FileSnapshotManager] = None,
        observers: Optional[List[ExecutionObserver]] = None,
    ):
        self.registry = registry
        self.resolver = resolver or VariableResolver()
        self.criticality = criticality or CriticalityAnalyzer()
        self.retry = retry or RetryController()
        self.snapshot_manager = snapshot_manager
        self.observers = ObserverGroup(observers)

    def execute(self, plan: Plan, context: Union[EditorContext, Dict[str, Any], None] = None) -> ExecutionOutcome:
        """Execute every step of ``plan`` until completion or a halt."""
        debug_logger = get_logger()
        editor = context if isinstance(context, EditorContext) else EditorContext.from_context(context)

        outcome = ExecutionOutcome(success=True)
        results = outcome.results

        for index, step in enumerate(plan.steps):
            self.observers.on_step_start(index, step)
            debug_logger.log_step_status(index, step.description, "running", {"tool": step.tool})

            tool = self.registry.select(step.tool)
            if tool is None:
                error = ToolNotFoundError(step.tool)
                self._record_failure(outcome, index, step, str(error))
                self._halt(outcome, step, f"Tool '{step.tool}' is not available")
                break

            missing = check_required_params(tool, step.params)
            if missing:
                error = MissingParameterError(step.tool, missing)
                self._record_failure(outcome, index, step, str(error))
                self._halt(outcome, step, f"Missing required parameters: {', '.join(missing)}")
                break

            try:
                payload = self._run_step(tool, step, results, editor)
            except Exception as e:
                if not self._handle_failure(outcome, plan, index, step, tool, e, editor):
                    break
            else:
                results.append(StepResult(success=True, step=step, result=payload))
                self.observers.on_step_success(index, step, payload)
                debug_logger.log_step_status(index, step.description, "succeeded")

            if not self.criticality.can_continue(step, results, plan):
                outcome.success = False
                self._halt(outcome, step, DEPENDENT_STEPS_REASON)
                break

        debug_logger.log("executor", "EXECUTION_COMPLETE", {
            "success": outcome.success,
            "results": len(results),
            "stopped_at_step": outcome.stopped_at_step,
            "stop_reason": outcome.stop_reason,
        })
        return outcome

    def _handle_failure(self, outcome: ExecutionOutcome, plan: Plan, index: int, step: PlanStep,
                        tool: Tool, error: Exception, editor: EditorContext) -> bool:
        """Record a failed step, retrying once when the error is transient.

        Observers see one outcome per step: the retry result when a retry
        runs, otherwise the original error.

        Returns False when the loop must halt.
        """
        debug_logger = get_logger()
        message = str(error)
        critical = self.criticality.is_critical(step, plan)

        if self.retry.should_retry(step, message):
            retry_step = self.retry.modify(step, message)
            debug_logger.log_step_status(index, step.description, "retrying", {"error": message})
            try:
                payload = self._run_step(tool, retry_step, outcome.results, editor)
            except Exception as retry_error:
                retry_message = str(retry_error)
                self._record_failure(outcome, index, step, retry_message)
                if critical:
                    self._halt(outcome, step, f"Retry failed: {retry_message}")
                    return False
                return True

            outcome.results.append(StepResult(success=True, step=retry_step, result=payload, was_retry=True))
            self.observers.on_step_success(index, retry_step, payload)
            debug_logger.log_step_status(index, step.description, "succeeded", {"retry": True})
            return True

        self._record_failure(outcome, index, step, message)
        if critical:
            self._halt(outcome, step, f"Critical error: {message}")
            return False
        return True

    def _record_failure(self, outcome: ExecutionOutcome, index: int, step: PlanStep,
                        error: str) -> None:
        outcome.results.append(StepResult(success=False, step=step, error=error))
        outcome.success = False
        self.observers.on_step_error(index, step, error)
        get_logger().log_step_status(index, step.description, "failed", {"error": error})

    @staticmethod
    def _halt(outcome: ExecutionOutcome, step: PlanStep, reason: str) -> None:
        outcome.stopped_at_step = step.description
        outcome.stop_reason = reason
        get_logger().log("executor", "EXECUTION_HALTED", {"step": step.description, "reason": reason}, "WARNING")

    def _run_step(self, tool: Tool, step: PlanStep, results: List[StepResult], editor: EditorContext) -> Any:
        params = self.resolver.resolve(step.params, results, editor)
        params = self.resolver.enrich_with_file_info(params, results, editor)
        if step.tool not in PATH_CREATING_TOOLS:
            params = self._correct_file_path(params)

        if step.tool == COMMAND_TOOL and self.snapshot_manager is not None:
            return self._run_with_snapshots(tool, params)
        return tool.run(params)

    def _run_with_snapshots(self, tool: Tool, params: Dict[str, Any]) -> Any:
        """Run the command tool between two workspace snapshots.

        Both snapshots are discarded once the changed files are known.
        """
        manager = self.snapshot_manager
        before_id = manager.create_snapshot(iter_workspace_files(limit=config.SNAPSHOT_MAX_FILES))
        try:
            result = tool.run(params)
        except Exception:
            manager.discard(before_id)
            raise

        after_id = manager.create_snapshot(iter_workspace_files(limit=config.SNAPSHOT_MAX_FILES))
        try:
            if not isinstance(result, dict):
                return result
            annotated = dict(result)
            annotated["snapshotBefore"] = before_id
            annotated["snapshotAfter"] = after_id
            annotated["fileChanges"] = manager.changed_files(before_id, after_id)
            return annotated
        finally:
            manager.discard(before_id, after_id)

    def _correct_file_path(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a non-existent file path with a workspace match for its basename."""
        key = None
        for candidate in FILE_PATH_KEYS:
            value = params.get(candidate)
            if isinstance(value, str) and value and "$STEP[" not in value:
                key = candidate
                break
        if key is None:
            return params

        value = params[key]
        if resolve_path(value).exists():
            return params

        basename = os.path.basename(value)
        if "." not in basename or "$" in basename:
            return params

        finder = self.registry.select(FIND_TOOL)
        if finder is None:
            return params

        debug_logger = get_logger()
        try:
            found = finder.run({"pattern": f"**/{basename}", "maxResults": 1})
        except Exception as e:
            debug_logger.log("executor", "PATH_CORRECTION_FAILED", {"path": value, "error": str(e)}, "WARNING")
            return params

        matches = found.get("matches") if isinstance(found, dict) else None
        if not matches:
            return params

        corrected = dict(params)
        corrected[key] = matches[0]
        debug_logger.log("executor", "PATH_CORRECTED", {"from": value, "to": matches[0], "param": key})
        return corrected
