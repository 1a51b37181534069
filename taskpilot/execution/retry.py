#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Single-shot retry policy for failed steps."""

from dataclasses import replace
from typing import Any, List

from taskpilot.debug_logger import get_logger
from taskpilot.models.plan import PlanStep


RETRYABLE_ERRORS: List[str] = [
    "context length exceeded",
    "rate limit",
    "timeout",
    "network error",
    "temporary failure",
]

RETRY_PREFIX = "Retry: "


class RetryController:
    """Decides whether a failed step gets one more attempt, and in what form."""

    def __init__(self, retryable_errors: List[str] = None):
        self.retryable_errors = [e.lower() for e in (retryable_errors or RETRYABLE_ERRORS)]

    def is_retryable_error(self, error: Any) -> bool:
        message = str(error).lower()
        return any(pattern in message for pattern in self.retryable_errors)

    def should_retry(self, step: PlanStep, error: Any) -> bool:
        """True if the error is transient and the step has not been retried yet."""
        if step.was_modified:
            return False
        retry = self.is_retryable_error(error)
        get_logger().log("retry", "RETRY_DECISION", {
            "step": step.description,
            "error": str(error),
            "retry": retry,
        }, "DEBUG")
        return retry

    def modify(self, step: PlanStep, error: Any) -> PlanStep:
        """Return the retry copy of ``step``; the original is left untouched."""
        params = dict(step.params)
        if "context length" in str(error).lower():
            params["simplified"] = True
        return replace(
            step,
            description=RETRY_PREFIX + step.description,
            params=params,
            was_modified=True,
        )
