#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Model pricing table and cost calculations.

Prices are USD per one million tokens. Unknown models are charged at the
default (low-tier) rate.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


USD_TO_EUR_RATE = 0.88

MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-5": {"input": 2.00, "output": 8.00},
    "gpt-5-mini": {"input": 0.50, "output": 2.00},
    "gpt-5-nano": {"input": 0.10, "output": 0.40},
    "gpt-5.2": {"input": 3.00, "output": 12.00},
    "gpt-5.1-codex": {"input": 2.50, "output": 10.00},
}

DEFAULT_PRICING: Dict[str, float] = {"input": 0.10, "output": 0.40}


@dataclass
class CostBreakdown:
    model: str
    input_tokens: int
    output_tokens: int
    input_usd: float
    output_usd: float
    total_usd: float
    total_eur: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "inputUSD": self.input_usd,
            "outputUSD": self.output_usd,
            "totalUSD": self.total_usd,
            "totalEUR": self.total_eur,
        }


def _round(value: float) -> float:
    return round(value, 6)


def get_model_pricing(model: Optional[str]) -> Dict[str, float]:
    """Return the input/output price per million tokens for a model."""
    return MODEL_PRICING.get((model or "").strip(), DEFAULT_PRICING)


def calculate_cost(model: Optional[str], input_tokens: int, output_tokens: int) -> float:
    """Total cost in USD."""
    pricing = get_model_pricing(model)
    cost = (input_tokens / 1_000_000) * pricing["input"] + (output_tokens / 1_000_000) * pricing["output"]
    return _round(cost)


def calculate_cost_eur(model: Optional[str], input_tokens: int, output_tokens: int) -> float:
    return _round(calculate_cost(model, input_tokens, output_tokens) * USD_TO_EUR_RATE)


def get_model_cost_breakdown(model: Optional[str], input_tokens: int, output_tokens: int) -> CostBreakdown:
    pricing = get_model_pricing(model)
    input_usd = _round((input_tokens / 1_000_000) * pricing["input"])
    output_usd = _round((output_tokens / 1_000_000) * pricing["output"])
    total_usd = _round(input_usd + output_usd)
    return CostBreakdown(
        model=model or "unknown",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_usd=input_usd,
        output_usd=output_usd,
        total_usd=total_usd,
        total_eur=_round(total_usd * USD_TO_EUR_RATE),
    )


def token_counts(token_count: Optional[Dict[str, Any]]) -> tuple:
    """(prompt, completion) from a token_count mapping, tolerating gaps."""
    token_count = token_count or {}
    return int(token_count.get("prompt") or 0), int(token_count.get("completion") or 0)


def cost_from_plan(plan) -> Optional[CostBreakdown]:
    """Cost of the planning call that produced ``plan``, if it was recorded."""
    if plan is None or not plan.model_info or not plan.token_count:
        return None
    model_name = plan.model_info.get("name")
    input_tokens, output_tokens = token_counts(plan.token_count)
    if not model_name or (input_tokens == 0 and output_tokens == 0):
        return None
    return get_model_cost_breakdown(model_name, input_tokens, output_tokens)
