#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Plan and plan step models for taskpilot."""

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from taskpilot.exceptions import PlanParseError


def _tag_list(value: Any) -> List[str]:
    """A single tag is accepted in place of a list; other scalars are dropped."""
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return []


@dataclass
class PlanStep:
    """One unit of work: a tool name plus the parameters to run it with."""

    description: str
    tool: str
    params: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)
    is_critical: Optional[bool] = None
    was_modified: bool = False
    # Optional resource tags used by continuation analysis
    produces: List[str] = field(default_factory=list)
    consumes: List[str] = field(default_factory=list)
    model_info: Optional[Dict[str, Any]] = None
    token_count: Optional[Dict[str, int]] = None

    def with_params(self, params: Dict[str, Any]) -> 'PlanStep':
        """Return a copy of this step carrying different parameters."""
        return replace(self, params=params)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "description": self.description,
            "tool": self.tool,
            "params": self.params,
        }
        if self.depends_on:
            data["dependsOn"] = list(self.depends_on)
        if self.is_critical is not None:
            data["isCritical"] = self.is_critical
        if self.was_modified:
            data["wasModified"] = True
        if self.produces:
            data["produces"] = list(self.produces)
        if self.consumes:
            data["consumes"] = list(self.consumes)
        if self.model_info:
            data["modelInfo"] = self.model_info
        if self.token_count:
            data["tokenCount"] = self.token_count
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlanStep':
        """Create a PlanStep from planner JSON (camelCase or snake_case keys)."""
        if not isinstance(data, dict):
            raise PlanParseError(f"Plan step must be an object, got {type(data).__name__}", raw=data)

        params = data.get("params") or data.get("parameters") or {}
        if not isinstance(params, dict):
            raise PlanParseError("Plan step params must be an object", raw=data)

        depends_on = _tag_list(data.get("dependsOn", data.get("depends_on")))

        is_critical = data.get("isCritical", data.get("is_critical"))

        return cls(
            description=str(data.get("description", "")),
            tool=str(data.get("tool", "")),
            params=copy.deepcopy(params),
            depends_on=depends_on,
            is_critical=is_critical if isinstance(is_critical, bool) else None,
            was_modified=bool(data.get("wasModified", data.get("was_modified", False))),
            produces=_tag_list(data.get("produces")),
            consumes=_tag_list(data.get("consumes")),
            model_info=data.get("modelInfo", data.get("model_info")),
            token_count=data.get("tokenCount", data.get("token_count")),
        )


@dataclass
class Plan:
    """Ordered list of steps plus planning provenance."""

    steps: List[PlanStep] = field(default_factory=list)
    model_info: Optional[Dict[str, Any]] = None
    token_count: Optional[Dict[str, int]] = None
    model_cost: Optional[Dict[str, Any]] = None
    applied_rules: List[str] = field(default_factory=list)
    validation_info: Optional[Dict[str, Any]] = None
    replanning_info: Optional[Dict[str, Any]] = None
    improvement_attempt: Optional[int] = None
    addressed_issues: Optional[int] = None
    improvement_reason: Optional[str] = None
    is_fallback: bool = False
    fallback_reason: Optional[str] = None

    def index_of(self, description: str) -> int:
        """Return the index of the first step with this description, or -1."""
        for index, step in enumerate(self.steps):
            if step.description == description:
                return index
        return -1

    def with_steps(self, steps: List[PlanStep]) -> 'Plan':
        return replace(self, steps=list(steps))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"steps": [step.to_dict() for step in self.steps]}
        optional = {
            "modelInfo": self.model_info,
            "tokenCount": self.token_count,
            "modelCost": self.model_cost,
            "appliedRules": self.applied_rules or None,
            "validationInfo": self.validation_info,
            "replanningInfo": self.replanning_info,
            "improvementAttempt": self.improvement_attempt,
            "addressedIssues": self.addressed_issues,
            "improvementReason": self.improvement_reason,
            "fallbackReason": self.fallback_reason,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.is_fallback:
            data["isFallback"] = True
        return data

    @classmethod
    def from_steps(cls, steps_data: Any, **metadata: Any) -> 'Plan':
        """Build a plan from a raw list of step objects."""
        if not isinstance(steps_data, list):
            raise PlanParseError("Plan structure is invalid - missing or invalid steps array", raw=steps_data)
        return cls(steps=[PlanStep.from_dict(item) for item in steps_data], **metadata)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Plan':
        """Build a plan from a ``{"steps": [...], ...}`` object."""
        if not isinstance(data, dict):
            raise PlanParseError("Plan must be an object", raw=data)
        return cls.from_steps(
            data.get("steps"),
            model_info=data.get("modelInfo"),
            token_count=data.get("tokenCount"),
            model_cost=data.get("modelCost"),
            applied_rules=list(data.get("appliedRules") or []),
            validation_info=data.get("validationInfo"),
            replanning_info=data.get("replanningInfo"),
            improvement_attempt=data.get("improvementAttempt"),
            addressed_issues=data.get("addressedIssues"),
            improvement_reason=data.get("improvementReason"),
            is_fallback=bool(data.get("isFallback", False)),
            fallback_reason=data.get("fallbackReason"),
        )
