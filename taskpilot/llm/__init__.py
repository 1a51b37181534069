#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Planner backends for taskpilot."""

from taskpilot.llm.planner import LLMPlanner, Planner, PlannerResponse, parse_planner_content
from taskpilot.llm.provider_factory import get_provider

__all__ = [
    "LLMPlanner",
    "Planner",
    "PlannerResponse",
    "parse_planner_content",
    "get_provider",
]
