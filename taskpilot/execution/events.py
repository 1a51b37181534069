#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Execution lifecycle events.

Observers are handed to the ExecutionEngine at construction time. Every hook
is optional; the base class implements them as no-ops.
"""

from typing import Any, Iterable, List, Optional

from taskpilot.debug_logger import get_logger


class ExecutionObserver:
    """Receives step and plan lifecycle events."""

    def on_step_start(self, index: int, step) -> None:
        pass

    def on_step_success(self, index: int, step, result: Any) -> None:
        pass

    def on_step_error(self, index: int, step, error: str) -> None:
        pass

    def on_plan_update(self, plan) -> None:
        pass


class ObserverGroup(ExecutionObserver):
    """Fans events out to several observers.

    A failing observer is logged and skipped; it never interrupts execution.
    """

    def __init__(self, observers: Optional[Iterable[ExecutionObserver]] = None):
        self.observers: List[ExecutionObserver] = list(observers or [])

    def add(self, observer: ExecutionObserver) -> None:
        self.observers.append(observer)

    def _emit(self, hook: str, *args: Any) -> None:
        for observer in self.observers:
            handler = getattr(observer, hook, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception as e:
                get_logger().log("executor", "OBSERVER_ERROR", {
                    "observer": type(observer).__name__,
                    "hook": hook,
                    "error": str(e),
                }, "WARNING")

    def on_step_start(self, index: int, step) -> None:
        self._emit("on_step_start", index, step)

    def on_step_success(self, index: int, step, result: Any) -> None:
        self._emit("on_step_success", index, step, result)

    def on_step_error(self, index: int, step, error: str) -> None:
        self._emit("on_step_error", index, step, error)

    def on_plan_update(self, plan) -> None:
        self._emit("on_plan_update", plan)
