#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Planner-backed plan validation and optimization."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from taskpilot import config
from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import PlanParseError
from taskpilot.llm.planner import Planner, parse_planner_content
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import IssueSeverity, ValidationIssue, ValidationResult
from taskpilot.tools.registry import ToolRegistry


VALIDATION_PROMPT = """
You are an intelligent plan validator for a coding assistant. Your task is to review and optimize an execution plan.

ORIGINAL USER REQUEST:
"{user_input}"

CURRENT PLAN:
{steps}

AVAILABLE TOOLS:
{tools}

VALIDATION CRITERIA:
1. Logic Flow: Do the steps follow a logical sequence?
2. Tool Usage: Are the right tools used for each task?
3. Parameter Quality: Are parameters well-formed and likely to work?
4. Efficiency: Can any steps be removed, combined, or optimized?
5. Error Prevention: Are there potential failure points that can be avoided?

OPTIMIZATION RULES:
- For FindFileTool: Use recursive patterns like "**/*filename*" instead of "*filename*"
- For ReadFileTool: Ensure it references valid results from FindFileTool using "$STEP[n].matches[0]"
- Remove redundant steps that do the same thing
- Ensure proper variable references between steps
- Check that file analysis tools have both content and sourcePath parameters

Please analyze the plan and respond in JSON format:
{{
  "valid": boolean,
  "confidence": number (0-100),
  "issues": [
    {{
      "stepIndex": number,
      "severity": "low|medium|high",
      "description": "description of issue",
      "suggestion": "how to fix it"
    }}
  ],
  "optimizedSteps": [
    // Only include if plan needs optimization
    // Same format as original steps but with improvements
  ],
  "reasoning": "explanation of your assessment"
}}
"""

_STEP_NUMBER_RE = re.compile(r"Step (\d+):")


@dataclass
class ValidationOutcome:
    """Accept/reject decision for one candidate plan."""

    valid: bool
    plan: Optional[Plan] = None
    errors: List[str] = field(default_factory=list)
    result: Optional[ValidationResult] = None


def _confidence(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_validation_result(data: Any) -> ValidationResult:
    """Build a ValidationResult from the validator's JSON answer.

    Raises:
        PlanParseError: if the answer is not an object or its optimized steps are malformed
    """
    if not isinstance(data, dict):
        raise PlanParseError("Validation response must be an object", raw=data)

    raw_issues = data.get("issues")
    if not isinstance(raw_issues, list):
        raw_issues = []
    issues = [ValidationIssue.from_dict(item) for item in raw_issues if isinstance(item, dict)]

    optimized = data.get("optimizedSteps")
    optimized_steps = None
    if isinstance(optimized, list) and optimized:
        optimized_steps = [PlanStep.from_dict(item) for item in optimized]

    return ValidationResult(
        valid=bool(data.get("valid", False)),
        confidence=_confidence(data.get("confidence")),
        issues=issues,
        optimized_steps=optimized_steps,
        reasoning=str(data.get("reasoning") or ""),
    )


def extract_issues_from_errors(errors: List[str]) -> List[ValidationIssue]:
    """Turn validation error strings into structured issues for the next attempt."""
    issues = []
    for error in errors:
        match = _STEP_NUMBER_RE.search(error)
        step_index = max(0, int(match.group(1)) - 1) if match else 0

        lowered = error.lower()
        if "critical" in lowered or "fatal" in lowered:
            severity = IssueSeverity.HIGH
        elif "warning" in lowered or "minor" in lowered:
            severity = IssueSeverity.LOW
        else:
            severity = IssueSeverity.MEDIUM

        suggestion = "Review and correct the plan structure"
        if "$STEP[" in error and "paths[0]" in error:
            suggestion = "Change variable references from $STEP[n].paths[0] to $STEP[n].matches[0]"
        elif "FindFileTool" in error:
            suggestion = "Use recursive patterns like **/*filename* for FindFileTool"
        elif "sourcePath" in error:
            suggestion = "Ensure all analysis tools have both content and sourcePath parameters"
        elif "parameter" in error:
            suggestion = "Check that all required parameters are provided"

        issues.append(ValidationIssue(step_index, severity, error, suggestion))
    return issues


class PlanValidator:
    """Asks the planner to review a candidate plan and decides whether to accept it.

    Acceptance:
      - valid, confidence >= 70 and no high-severity issue, or
      - optimized steps returned with confidence >= 60.
    Anything the validator cannot answer (unparseable response, planner
    error) accepts the original plan unchanged.
    """

    def __init__(self, planner: Planner, registry: ToolRegistry, enabled: Optional[bool] = None):
        self.planner = planner
        self.registry = registry
        self.enabled = config.INTELLIGENT_VALIDATION if enabled is None else enabled

    def build_prompt(self, plan: Plan, user_input: Optional[str]) -> str:
        return VALIDATION_PROMPT.format(
            user_input=user_input or "Not provided",
            steps=json.dumps([step.to_dict() for step in plan.steps], indent=2, default=str),
            tools=self.registry.catalog_text(),
        )

    def validate(self, plan: Plan, user_input: Optional[str] = None) -> ValidationOutcome:
        debug_logger = get_logger()

        if plan is None or not isinstance(plan.steps, list):
            return ValidationOutcome(valid=False, errors=["Plan structure is invalid"])

        if not self.enabled:
            debug_logger.log("validator", "VALIDATION_SKIPPED", {"reason": "intelligent validation disabled"})
            return ValidationOutcome(valid=True, plan=plan)

        try:
            response = self.planner.generate(
                self.build_prompt(plan, user_input),
                max_tokens=2048,
                temperature=0.1,
                format="json",
                task_type="validation",
            )
        except Exception as e:
            debug_logger.log_error("validator", e, {"fallback": "accept original plan"})
            return ValidationOutcome(valid=True, plan=plan)

        try:
            result = parse_validation_result(parse_planner_content(response.content))
        except PlanParseError as e:
            debug_logger.log("validator", "VALIDATION_PARSE_ERROR", {
                "error": str(e),
                "fallback": "accept original plan",
            }, "WARNING")
            return ValidationOutcome(valid=True, plan=plan)

        return self.decide(plan, result)

    def decide(self, plan: Plan, result: ValidationResult) -> ValidationOutcome:
        """Apply the acceptance thresholds to a parsed validation result."""
        high_issues = result.high_severity_issues
        should_accept = (
            result.valid
            and result.confidence >= config.VALIDATION_ACCEPT_CONFIDENCE
            and not high_issues
        )
        has_optimizations = bool(result.optimized_steps)
        is_valid = should_accept or (has_optimizations and result.confidence >= config.VALIDATION_OPTIMIZED_CONFIDENCE)

        get_logger().log("validator", "VALIDATION_DECISION", {
            "accepted": is_valid,
            "confidence": result.confidence,
            "reasoning": result.reasoning,
            "issues": [issue.to_dict() for issue in result.issues],
            "optimized": has_optimizations,
        })

        if not is_valid:
            errors = [f"Step {issue.step_index + 1}: {issue.description}" for issue in result.issues]
            return ValidationOutcome(valid=False, errors=errors or ["Plan validation failed"], result=result)

        accepted = plan.with_steps(result.optimized_steps if has_optimizations else plan.steps)
        accepted.validation_info = {
            "confidence": result.confidence,
            "reasoning": result.reasoning,
            "optimized": has_optimizations,
            "issuesFound": len(result.issues),
            "issuesResolved": has_optimizations,
        }
        return ValidationOutcome(valid=True, plan=accepted, result=result)
