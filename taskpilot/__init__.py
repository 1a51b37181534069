#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""taskpilot - plan, execute, reflect and replan orchestration for AI coding assistants."""

from taskpilot.versioning import get_version

__version__ = get_version()

# Configuration
from taskpilot.config import ROOT

# Core models
from taskpilot.models import (
    EditorContext,
    EvaluationResult,
    Plan,
    PlanStep,
    Reflection,
    ReflectionStatus,
    StepResult,
)

# Orchestration
from taskpilot.execution import (
    ExecutionEngine,
    ExecutionObserver,
    Orchestrator,
    OrchestratorConfig,
    OrchestratorResult,
)

# Planner backends
from taskpilot.llm import LLMPlanner, Planner, PlannerResponse

# Tools and persistence
from taskpilot.tools import Tool, ToolParameter, ToolRegistry, build_default_registry
from taskpilot.event_store import EventStore, InMemoryEventStore, create_event_store

__all__ = [
    "__version__",
    "ROOT",
    "EditorContext",
    "EvaluationResult",
    "Plan",
    "PlanStep",
    "Reflection",
    "ReflectionStatus",
    "StepResult",
    "ExecutionEngine",
    "ExecutionObserver",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "LLMPlanner",
    "Planner",
    "PlannerResponse",
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "build_default_registry",
    "EventStore",
    "InMemoryEventStore",
    "create_event_store",
]
