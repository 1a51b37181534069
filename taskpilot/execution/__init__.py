#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Planning, execution, reflection and replanning for taskpilot."""

from taskpilot.execution.criticality import CriticalityAnalyzer
from taskpilot.execution.events import ExecutionObserver, ObserverGroup
from taskpilot.execution.executor import ExecutionEngine, ExecutionOutcome
from taskpilot.execution.orchestrator import Orchestrator, OrchestratorConfig, OrchestratorResult
from taskpilot.execution.planner import TaskPlanner, create_fallback_plan
from taskpilot.execution.reflection import ReflectionEngine
from taskpilot.execution.replanning import ReplanningController
from taskpilot.execution.retry import RetryController
from taskpilot.execution.validator import PlanValidator, ValidationOutcome
from taskpilot.execution.variables import ExecutionHistory, VariableResolver

__all__ = [
    "CriticalityAnalyzer",
    "ExecutionObserver",
    "ObserverGroup",
    "ExecutionEngine",
    "ExecutionOutcome",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "TaskPlanner",
    "create_fallback_plan",
    "ReflectionEngine",
    "ReplanningController",
    "RetryController",
    "PlanValidator",
    "ValidationOutcome",
    "ExecutionHistory",
    "VariableResolver",
]
