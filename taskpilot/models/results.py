#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Execution, validation, reflection and evaluation result models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from taskpilot.models.plan import PlanStep


class IssueSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> 'IssueSeverity':
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.MEDIUM


class ReflectionStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class StepResult:
    """Outcome of one attempted step, appended in execution order."""

    success: bool
    step: PlanStep
    result: Any = None
    error: Optional[str] = None
    was_retry: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "step": self.step.to_dict(),
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.was_retry:
            data["wasRetry"] = True
        return data


@dataclass
class ValidationIssue:
    step_index: int
    severity: IssueSeverity
    description: str
    suggestion: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepIndex": self.step_index,
            "severity": self.severity.value,
            "description": self.description,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationIssue':
        try:
            step_index = int(data.get("stepIndex", data.get("step_index", 0)))
        except (TypeError, ValueError):
            step_index = 0
        return cls(
            step_index=step_index,
            severity=IssueSeverity.parse(data.get("severity", "medium")),
            description=str(data.get("description", "")),
            suggestion=str(data.get("suggestion") or ""),
        )


@dataclass
class ValidationResult:
    """Planner review of a candidate plan."""

    valid: bool
    confidence: float = 0
    issues: List[ValidationIssue] = field(default_factory=list)
    optimized_steps: Optional[List[PlanStep]] = None
    reasoning: str = ""

    @property
    def high_severity_issues(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is IssueSeverity.HIGH]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "valid": self.valid,
            "confidence": self.confidence,
            "issues": [issue.to_dict() for issue in self.issues],
            "reasoning": self.reasoning,
        }
        if self.optimized_steps is not None:
            data["optimizedSteps"] = [step.to_dict() for step in self.optimized_steps]
        return data


@dataclass
class ModelUsage:
    model: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    cost_eur: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "calls": self.calls,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "costUSD": self.cost_usd,
            "costEUR": self.cost_eur,
        }


@dataclass
class Reflection:
    """Post-mortem of one execution attempt."""

    text: str
    status: ReflectionStatus
    successful_steps: int = 0
    failed_steps: int = 0
    stopped_at_step: Optional[str] = None
    stop_reason: Optional[str] = None
    model_usage: List[ModelUsage] = field(default_factory=list)
    total_cost_usd: float = 0.0
    total_cost_eur: float = 0.0
    recommendations: List[str] = field(default_factory=list)
    applied_rules: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "text": self.text,
            "status": self.status.value,
            "successfulSteps": self.successful_steps,
            "failedSteps": self.failed_steps,
            "stoppedAtStep": self.stopped_at_step,
            "stopReason": self.stop_reason,
            "modelUsage": [usage.to_dict() for usage in self.model_usage],
            "totalCostUSD": self.total_cost_usd,
            "totalCostEUR": self.total_cost_eur,
            "recommendations": list(self.recommendations),
            "timestamp": self.timestamp,
        }
        if self.applied_rules:
            data["appliedRules"] = list(self.applied_rules)
        return data


@dataclass
class EvaluationResult:
    """Replanning decision for a completed attempt."""

    should_replan: bool
    reasoning: str
    confidence: float
    failure_type: Optional[str] = None
    suggested_improvements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shouldReplan": self.should_replan,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "failureType": self.failure_type,
            "suggestedImprovements": list(self.suggested_improvements),
        }
