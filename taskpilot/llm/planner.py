#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Planner contract: prompt in, structured (JSON) content out."""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from taskpilot import config
from taskpilot.debug_logger import get_logger
from taskpilot.exceptions import PlanParseError, PlannerUnavailableError


_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass
class PlannerResponse:
    """What one planner call produced."""

    content: Union[str, Dict[str, Any], list]
    model_info: Dict[str, Any] = field(default_factory=dict)
    token_count: Dict[str, int] = field(default_factory=dict)


class Planner(ABC):
    """Text-in / JSON-out generator used for planning, validation and evaluation."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        format: Optional[str] = "json",
        task_type: Optional[str] = None,
    ) -> PlannerResponse:
        """Run the prompt and return the raw content plus usage.

        Raises:
            PlannerUnavailableError: if the backend cannot answer
        """


def parse_planner_content(content: Any) -> Any:
    """Turn planner content into a Python object.

    Accepts an already-parsed object, a JSON string, or a JSON string wrapped
    in a Markdown code fence.

    Raises:
        PlanParseError: if the content is not valid JSON
    """
    if isinstance(content, (dict, list)):
        return content
    if not isinstance(content, str):
        raise PlanParseError(f"Unsupported planner content type: {type(content).__name__}", raw=content)

    text = content.strip()
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        # Models sometimes wrap the object in prose
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                pass
        raise PlanParseError(f"Invalid JSON from planner: {e}", raw=content)


class LLMPlanner(Planner):
    """Planner backed by a chat LLM provider."""

    def __init__(self, provider=None, model: Optional[str] = None):
        if provider is None:
            from taskpilot.llm.provider_factory import get_provider
            provider = get_provider()
        self.provider = provider
        self.model = model

    @property
    def model_name(self) -> str:
        if self.model:
            return self.model
        if getattr(self.provider, "name", None) == "openai":
            return config.OPENAI_MODEL
        if getattr(self.provider, "name", None) == "ollama":
            return config.OLLAMA_MODEL
        return config.active_model()

    def generate(
        self,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        format: Optional[str] = "json",
        task_type: Optional[str] = None,
    ) -> PlannerResponse:
        debug_logger = get_logger()
        options = {
            "max_tokens": max_tokens,
            "temperature": temperature,
            "format": format,
            "task_type": task_type,
        }
        debug_logger.log_llm_request(self.model_name, prompt, options)

        response = self.provider.chat(
            [{"role": "user", "content": prompt}],
            model=self.model_name,
            max_tokens=max_tokens,
            temperature=temperature,
            format=format,
        )
        if "error" in response:
            debug_logger.log("llm", "PLANNER_UNAVAILABLE", {"error": response["error"]}, "ERROR")
            raise PlannerUnavailableError(response["error"])

        content = (response.get("message") or {}).get("content", "")
        usage = response.get("usage") or {}
        token_count = {
            "prompt": int(usage.get("prompt") or 0),
            "completion": int(usage.get("completion") or 0),
        }
        debug_logger.log_llm_response(self.model_name, content, token_count)

        model_info = {"name": response.get("model") or self.model_name}
        if task_type:
            model_info["taskType"] = task_type
        return PlannerResponse(content=content, model_info=model_info, token_count=token_count)
