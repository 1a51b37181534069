#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Post-execution evaluation and replanning."""

import json
from typing import Any, List, Optional

from taskpilot import config, pricing
from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import PlanParseError, ReplanningError
from taskpilot.llm.planner import Planner, parse_planner_content
from taskpilot.models.plan import Plan
from taskpilot.models.results import EvaluationResult, Reflection, StepResult
from taskpilot.tools.registry import ToolRegistry


EVALUATION_PROMPT = """
You are an intelligent execution evaluator for a coding assistant. Your task is to analyze the results of a plan execution and determine if replanning would be beneficial.

ORIGINAL USER REQUEST:
"{user_input}"

EXECUTED PLAN:
{steps}

EXECUTION RESULTS SUMMARY:
- Total steps: {total}
- Successful steps: {successful}
- Failed steps: {failed}
- Status: {status}
{stop_details}
DETAILED RESULTS:
{details}

EVALUATION CRITERIA:
1. Goal Achievement: Did the execution accomplish the user's original request?
2. Error Analysis: Are the errors fundamental design flaws or recoverable issues?
3. Alternative Approaches: Could a different approach be more successful?
4. Missing Steps: Are there obvious missing steps that would improve results?
5. Tool Selection: Were appropriate tools selected for each task?

Please analyze the execution and respond in JSON format:
{{
  "shouldReplan": boolean,
  "confidence": number (0-100),
  "reasoning": "detailed explanation of your assessment",
  "failureType": "none|temporary|systematic|fundamental",
  "suggestedImprovements": [
    "specific suggestions for replanning"
  ]
}}
"""

REPLANNING_PROMPT = """
You are an intelligent task replanner for a coding assistant. Your task is to create a new execution plan based on the lessons learned from a previous failed or suboptimal attempt.

ORIGINAL USER REQUEST:
"{user_input}"

PREVIOUS PLAN (FAILED/SUBOPTIMAL):
{steps}

WHAT WENT WRONG:
- Status: {status}
- Successful steps: {successful}/{total}
{stop_details}
DETAILED FAILURE ANALYSIS:
{failures}

AVAILABLE TOOLS:
{tools}

REPLANNING GUIDELINES:
1. Learn from Failures: Avoid the specific issues that caused failures in the previous attempt
2. Alternative Approach: Consider fundamentally different approaches to achieve the same goal
3. Better Tool Selection: Choose more appropriate tools based on the failure analysis
4. Improved Parameters: Use better parameters, especially for file paths and patterns
5. Add Validation Steps: Include verification steps to catch issues early
6. Simplify: Break complex steps into simpler, more reliable sub-steps

SPECIFIC RULES:
- For file operations: Always verify file existence before attempting to read/modify
- For searches: Use more specific and reliable search patterns
- For analysis: Ensure all required parameters are provided
- Add error handling and fallback steps where appropriate

This is replanning attempt #{attempt}. Be more conservative and reliable than previous attempts.

Respond in the following JSON format:
{{
  "plan": {{
    "steps": [
      {{
        "description": "Step description",
        "tool": "ToolName",
        "params": {{
          "param1": "value1",
          "param2": "value2"
        }}
      }}
    ],
    "replanningReason": "explanation of why this approach should work better",
    "learningsApplied": [
      "specific lessons learned from previous failure"
    ]
  }}
}}
"""


def failure_rate(results: List[StepResult]) -> float:
    if not results:
        return 0.0
    return sum(1 for r in results if not r.success) / len(results)


def _as_list(value: Any) -> list:
    """Planner answers sometimes carry a scalar where a list belongs."""
    return list(value) if isinstance(value, (list, tuple)) else []


def _stop_details(reflection: Reflection, reason_label: str) -> str:
    lines = []
    if reflection.stopped_at_step:
        lines.append(f"- Stopped at: {reflection.stopped_at_step}")
    if reflection.stop_reason:
        lines.append(f"- {reason_label}: {reflection.stop_reason}")
    return "\n".join(lines) + "\n" if lines else ""


def _result_rows(results: List[StepResult], include_result_flag: bool) -> List[dict]:
    rows = []
    for number, result in enumerate(results, start=1):
        row = {
            "step": number,
            "success": result.success,
            "tool": result.step.tool,
            "description": result.step.description,
            "error": result.error,
        }
        if include_result_flag:
            row["hasResult"] = result.result is not None
        rows.append(row)
    return rows


class ReplanningController:
    """Decides whether a finished attempt deserves a new plan, and produces it."""

    def __init__(self, planner: Planner, registry: ToolRegistry, auto_replanning: Optional[bool] = None):
        self.planner = planner
        self.registry = registry
        self.auto_replanning = config.AUTO_REPLANNING if auto_replanning is None else auto_replanning

    def evaluate(self, user_input: str, plan: Plan, results: List[StepResult],
                 reflection: Reflection) -> EvaluationResult:
        """Ask the planner whether to replan; only confident answers (>= 60) count."""
        debug_logger = get_logger()
        debug_logger.log_workflow_phase("evaluation", {"results": len(results)})

        if not self.auto_replanning:
            return EvaluationResult(False, "Auto-replanning is disabled in settings", 100)

        rate = failure_rate(results)
        try:
            response = self.planner.generate(
                self.build_evaluation_prompt(user_input, plan, results, reflection),
                max_tokens=1024,
                temperature=0.2,
                format="json",
                task_type="evaluation",
            )
        except Exception as e:
            debug_logger.log_error("replanning", e, {"failure_rate": rate})
            return EvaluationResult(
                should_replan=rate > config.REPLAN_FAILURE_RATE_ON_CALL_ERROR,
                reasoning=f"Evaluation failed, using fallback logic. Failure rate: {round(rate * 100)}%",
                confidence=30,
            )

        try:
            data = parse_planner_content(response.content)
            if not isinstance(data, dict):
                raise PlanParseError("Evaluation response must be an object", raw=data)
            confidence = float(data.get("confidence") or 0)
            failure_type = data.get("failureType")
            evaluation = EvaluationResult(
                should_replan=bool(data.get("shouldReplan")) and confidence >= config.REPLAN_MIN_CONFIDENCE,
                reasoning=str(data.get("reasoning") or ""),
                confidence=confidence,
                failure_type=str(failure_type) if failure_type is not None else None,
                suggested_improvements=[str(item) for item in _as_list(data.get("suggestedImprovements"))],
            )
        except (PlanParseError, TypeError, ValueError) as e:
            debug_logger.log("replanning", "EVALUATION_PARSE_ERROR", {"error": str(e), "failure_rate": rate}, "WARNING")
            return EvaluationResult(
                should_replan=rate > config.REPLAN_FAILURE_RATE_ON_PARSE_ERROR,
                reasoning="Evaluation parsing failed, using simple failure rate heuristic",
                confidence=50,
            )

        debug_logger.log("replanning", "EVALUATION_DECISION", evaluation.to_dict())
        return evaluation

    def replan(self, user_input: str, previous_plan: Plan, previous_results: List[StepResult],
               previous_reflection: Reflection, replan_count: int) -> Plan:
        """Ask the planner for a brand-new plan informed by the previous failures.

        Raises:
            ReplanningError: if the planner fails or its answer has no ``plan.steps``
        """
        debug_logger = get_logger()
        attempt = replan_count + 1
        debug_logger.log_workflow_phase("replanning", {"attempt": attempt})

        try:
            response = self.planner.generate(
                self.build_replanning_prompt(user_input, previous_plan, previous_results,
                                             previous_reflection, attempt),
                max_tokens=2048,
                temperature=0.3,
                format="json",
                task_type="replanning",
            )
            data = parse_planner_content(response.content)
            inner = data.get("plan") if isinstance(data, dict) else None
            if not isinstance(inner, dict) or not isinstance(inner.get("steps"), list):
                raise PlanParseError("Invalid replan structure", raw=data)
            plan = Plan.from_dict(inner)
            plan.replanning_info = {
                "attempt": attempt,
                "reason": inner.get("replanningReason"),
                "learningsApplied": [str(item) for item in _as_list(inner.get("learningsApplied"))],
                "previousFailures": sum(1 for r in previous_results if not r.success),
            }
        except PlanParseError as e:
            raise ReplanningError(f"Failed to parse replanning result: {e}") from e
        except ReplanningError:
            raise
        except Exception as e:
            raise ReplanningError(f"Replanning failed: {e}") from e

        plan.model_info = response.model_info or None
        plan.token_count = response.token_count or None
        breakdown = pricing.cost_from_plan(plan)
        if breakdown is not None:
            plan.model_cost = breakdown.to_dict()
        debug_logger.log("replanning", "REPLAN_CREATED", {
            "attempt": attempt,
            "steps": len(plan.steps),
            "reason": plan.replanning_info["reason"],
            "learnings": plan.replanning_info["learningsApplied"],
        })
        return plan

    def build_evaluation_prompt(self, user_input: str, plan: Plan, results: List[StepResult],
                                reflection: Reflection) -> str:
        successful = sum(1 for r in results if r.success)
        return EVALUATION_PROMPT.format(
            user_input=user_input,
            steps=json.dumps([step.to_dict() for step in plan.steps], indent=2, default=str),
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            status=reflection.status.value,
            stop_details=_stop_details(reflection, "Stop reason"),
            details=json.dumps(_result_rows(results, include_result_flag=True), indent=2, default=str),
        )

    def build_replanning_prompt(self, user_input: str, plan: Plan, results: List[StepResult],
                                reflection: Reflection, attempt: int) -> str:
        failures = [row for row in _result_rows(results, include_result_flag=False) if not row["success"]]
        return REPLANNING_PROMPT.format(
            user_input=user_input,
            steps=json.dumps([step.to_dict() for step in plan.steps], indent=2, default=str),
            status=reflection.status.value,
            successful=sum(1 for r in results if r.success),
            total=len(results),
            stop_details=_stop_details(reflection, "Reason"),
            failures=json.dumps(failures, indent=2, default=str),
            tools=self.registry.catalog_text(),
            attempt=attempt,
        )
