#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Plan -> execute -> reflect -> evaluate/replan control loop.

One ``orchestrate`` call plans the request, runs the plan, reflects on the
results and, while the attempt failed and the replanning budget allows it,
asks the planner for a new plan and starts over. Results of a discarded
attempt are not merged into the next one.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from taskpilot import config
from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import ReplanningError
from taskpilot.execution.criticality import CriticalityAnalyzer
from taskpilot.execution.events import ExecutionObserver
from taskpilot.execution.executor import ExecutionEngine
from taskpilot.execution.planner import TaskPlanner
from taskpilot.execution.reflection import ReflectionEngine
from taskpilot.execution.replanning import ReplanningController
from taskpilot.execution.retry import RetryController
from taskpilot.execution.validator import PlanValidator
from taskpilot.execution.variables import VariableResolver
from taskpilot.llm.planner import Planner
from taskpilot.models.context import EditorContext
from taskpilot.models.plan import Plan
from taskpilot.models.results import Reflection, StepResult
from taskpilot.snapshots import FileSnapshotManager
from taskpilot.tools.registry import ToolRegistry, build_default_registry


@dataclass
class OrchestratorConfig:
    """Run-level switches; defaults come from the environment."""

    max_replanning: int = field(default_factory=lambda: config.MAX_REPLANNING)
    intelligent_validation: bool = field(default_factory=lambda: config.INTELLIGENT_VALIDATION)
    auto_replanning: bool = field(default_factory=lambda: config.AUTO_REPLANNING)
    max_planning_attempts: int = field(default_factory=lambda: config.MAX_PLANNING_ATTEMPTS)

    def __post_init__(self):
        self.max_replanning = max(0, int(self.max_replanning))
        self.max_planning_attempts = max(1, int(self.max_planning_attempts))


@dataclass
class OrchestratorResult:
    """What the caller sees after one orchestration."""

    success: bool
    results: List[StepResult] = field(default_factory=list)
    reflection: Optional[Reflection] = None
    stopped_at_step: Optional[str] = None
    stop_reason: Optional[str] = None
    replan_count: int = 0
    model_cost: Optional[Dict[str, Any]] = None
    plan: Optional[Plan] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "results": [result.to_dict() for result in self.results],
            "reflection": self.reflection.to_dict() if self.reflection else None,
            "stoppedAtStep": self.stopped_at_step,
            "stopReason": self.stop_reason,
            "replanCount": self.replan_count,
            "modelCost": self.model_cost,
        }
        if self.plan is not None:
            data["plan"] = self.plan.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


class Orchestrator:
    """Wires the planner, validator, engine, reflection and replanning together."""

    def __init__(
        self,
        planner: Planner,
        registry: Optional[ToolRegistry] = None,
        event_store=None,
        config: Optional[OrchestratorConfig] = None,
        observers: Optional[List[ExecutionObserver]] = None,
        snapshot_manager: Optional[FileSnapshotManager] = None,
    ):
        self.planner = planner
        self.event_store = event_store
        self.registry = registry if registry is not None else build_default_registry(event_store)
        self.config = config or OrchestratorConfig()

        self.validator = PlanValidator(planner, self.registry, enabled=self.config.intelligent_validation)
        self.task_planner = TaskPlanner(
            planner, self.registry, self.validator, max_attempts=self.config.max_planning_attempts
        )
        self.engine = ExecutionEngine(
            self.registry,
            resolver=VariableResolver(),
            criticality=CriticalityAnalyzer(),
            retry=RetryController(),
            snapshot_manager=snapshot_manager if snapshot_manager is not None else FileSnapshotManager(),
            observers=observers,
        )
        self.reflection = ReflectionEngine()
        self.replanning = ReplanningController(planner, self.registry, auto_replanning=self.config.auto_replanning)

    def orchestrate(self, user_input: str,
                    context: Union[EditorContext, Dict[str, Any], None] = None) -> OrchestratorResult:
        """Run the full loop for one request. Never raises."""
        debug_logger = get_logger()
        debug_logger.log_workflow_phase("orchestrate", {"input": user_input})

        if isinstance(context, EditorContext):
            context_dict = context.to_dict()
        else:
            context_dict = dict(context or {})

        try:
            plan = self.task_planner.plan_task(user_input, context_dict)
            self.engine.observers.on_plan_update(plan)
            result = self._run(user_input, plan, context_dict)
        except Exception as e:
            debug_logger.log_error("orchestrator", e, {"input": user_input})
            return OrchestratorResult(success=False, error=str(e))

        self._save_user_request(user_input, result)
        debug_logger.log("orchestrator", "ORCHESTRATION_COMPLETE", {
            "success": result.success,
            "replan_count": result.replan_count,
            "stopped_at_step": result.stopped_at_step,
        })
        return result

    def _run(self, user_input: str, plan: Plan, context: Dict[str, Any]) -> OrchestratorResult:
        debug_logger = get_logger()
        replan_count = 0
        max_replanning = self.config.max_replanning

        while True:
            outcome = self.engine.execute(plan, context)
            reflection = self.reflection.reflect(
                plan, outcome.results, outcome.stopped_at_step, outcome.stop_reason
            )

            if outcome.success or replan_count >= max_replanning:
                break

            evaluation = self.replanning.evaluate(user_input, plan, outcome.results, reflection)
            if not evaluation.should_replan:
                break

            try:
                plan = self.replanning.replan(user_input, plan, outcome.results, reflection, replan_count)
            except ReplanningError as e:
                debug_logger.log_error("orchestrator", e, {"replan_count": replan_count})
                break

            replan_count += 1
            self.engine.observers.on_plan_update(plan)

        return OrchestratorResult(
            success=outcome.success,
            results=outcome.results,
            reflection=reflection,
            stopped_at_step=outcome.stopped_at_step,
            stop_reason=outcome.stop_reason,
            replan_count=replan_count,
            model_cost=plan.model_cost,
            plan=plan,
        )

    def _save_user_request(self, user_input: str, result: OrchestratorResult) -> None:
        if self.event_store is None:
            return
        event = {
            "type": "userRequest",
            "input": user_input,
            "plan": result.plan.to_dict() if result.plan else None,
            "results": [r.to_dict() for r in result.results],
            "reflection": result.reflection.to_dict() if result.reflection else None,
            "success": result.success,
            "stoppedAtStep": result.stopped_at_step,
            "stopReason": result.stop_reason,
            "replanCount": result.replan_count,
            "modelCost": result.model_cost,
        }
        try:
            self.event_store.save_event(event)
        except OSError as e:
            get_logger().warning("Error saving userRequest event: %s", e)
