#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Plan, result and context models for taskpilot."""

from taskpilot.models.context import EditorContext
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import (
    EvaluationResult,
    IssueSeverity,
    ModelUsage,
    Reflection,
    ReflectionStatus,
    StepResult,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "EditorContext",
    "Plan",
    "PlanStep",
    "EvaluationResult",
    "IssueSeverity",
    "ModelUsage",
    "Reflection",
    "ReflectionStatus",
    "StepResult",
    "ValidationIssue",
    "ValidationResult",
]
