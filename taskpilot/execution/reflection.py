#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Post-execution reflection: counts, cost accounting and recommendations."""

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from taskpilot import pricing
from taskpilot.debug_logger import get_logger
from taskpilot.models.plan import Plan
from taskpilot.models.results import ModelUsage, Reflection, ReflectionStatus, StepResult


HIGH_COST_THRESHOLD_USD = 0.05

# stop reason substring -> advice
STOP_REASON_RECOMMENDATIONS: List[Tuple[str, str]] = [
    ("is not available", "Make sure every tool referenced by the plan is registered, or ask for a plan that only uses available tools."),
    ("Missing required parameters", "Check that each step provides all required parameters for its tool."),
    ("Critical error", "Review the error of the critical step; mark steps that may fail safely as non-critical."),
    ("depends on the success", "Fix the failing step first: later steps depend on its output."),
]


class ReflectionEngine:
    """Summarizes one execution attempt. Never raises."""

    def reflect(self, plan: Plan, results: List[StepResult],
                stopped_at_step: Optional[str] = None, stop_reason: Optional[str] = None) -> Reflection:
        try:
            return self._reflect(plan, results, stopped_at_step, stop_reason)
        except Exception as e:
            get_logger().log_error("reflection", e, {"stopped_at_step": stopped_at_step})
            return Reflection(
                text=f"Error generating reflection: {e}",
                status=ReflectionStatus.FAILED,
                stopped_at_step=stopped_at_step,
                stop_reason=stop_reason,
            )

    def _reflect(self, plan: Plan, results: List[StepResult],
                 stopped_at_step: Optional[str], stop_reason: Optional[str]) -> Reflection:
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful

        if failed and not successful:
            status = ReflectionStatus.FAILED
        elif failed:
            status = ReflectionStatus.PARTIAL
        else:
            status = ReflectionStatus.SUCCESS

        usage = self.aggregate_model_usage(plan, results)
        total_usd = round(sum(row.cost_usd for row in usage), 6)
        total_eur = round(sum(row.cost_eur for row in usage), 6)

        text = f"Completed {successful} steps successfully and {failed} steps failed."
        if stopped_at_step:
            text += f'\nExecution stopped at step "{stopped_at_step}" for the following reason: {stop_reason}'

        reflection = Reflection(
            text=text,
            status=status,
            successful_steps=successful,
            failed_steps=failed,
            stopped_at_step=stopped_at_step,
            stop_reason=stop_reason,
            model_usage=usage,
            total_cost_usd=total_usd,
            total_cost_eur=total_eur,
            recommendations=self.recommendations(stop_reason, total_usd),
            applied_rules=list(plan.applied_rules) if plan else [],
        )
        get_logger().log("reflection", "REFLECTION", {
            "status": status.value,
            "successful": successful,
            "failed": failed,
            "total_cost_usd": total_usd,
        })
        return reflection

    def aggregate_model_usage(self, plan: Optional[Plan], results: List[StepResult]) -> List[ModelUsage]:
        """Group the planning call and successful results by model, then price each group."""
        groups: "OrderedDict[str, Dict[str, int]]" = OrderedDict()

        def add(model_info: Any, token_count: Any) -> None:
            if not isinstance(model_info, dict) or not model_info.get("name"):
                return
            name = model_info["name"]
            prompt_tokens, completion_tokens = pricing.token_counts(token_count if isinstance(token_count, dict) else None)
            group = groups.setdefault(name, {"calls": 0, "input": 0, "output": 0})
            group["calls"] += 1
            group["input"] += prompt_tokens
            group["output"] += completion_tokens

        if plan is not None:
            add(plan.model_info, plan.token_count)

        for result in results:
            if not result.success:
                continue
            payload = result.result if isinstance(result.result, dict) else {}
            if payload.get("modelInfo"):
                add(payload.get("modelInfo"), payload.get("tokenCount"))
            else:
                add(result.step.model_info, result.step.token_count)

        usage = []
        for name, group in groups.items():
            breakdown = pricing.get_model_cost_breakdown(name, group["input"], group["output"])
            usage.append(ModelUsage(
                model=name,
                calls=group["calls"],
                input_tokens=group["input"],
                output_tokens=group["output"],
                cost_usd=breakdown.total_usd,
                cost_eur=breakdown.total_eur,
            ))
        return usage

    @staticmethod
    def recommendations(stop_reason: Optional[str], total_cost_usd: float) -> List[str]:
        advice = []
        if stop_reason:
            for marker, text in STOP_REASON_RECOMMENDATIONS:
                if marker in stop_reason:
                    advice.append(text)
        if total_cost_usd > HIGH_COST_THRESHOLD_USD:
            advice.append(
                f"The execution had a high cost (${total_cost_usd:.4f} USD). "
                "Consider a cheaper model for simple tasks."
            )
        elif total_cost_usd > 0:
            advice.append(f"The execution had a low cost (${total_cost_usd:.6f} USD).")
        return advice
