"""OpenAI LLM provider implementation."""

import os
from typing import Any, Dict, List, Optional

from taskpilot import config
from taskpilot.debug_logger import get_logger
from .base import LLMProvider, ProviderError


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        self.name = "openai"
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self._client = None

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            try:
                import openai
            except ImportError:
                raise ImportError(
                    "OpenAI package not installed. Install with: pip install openai"
                )
            self._client = openai.OpenAI(api_key=self.api_key, timeout=config.OPENAI_TIMEOUT)
        return self._client

    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Send chat request to OpenAI."""
        debug_logger = get_logger()
        model_name = model or config.OPENAI_MODEL

        request_params: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
        }
        if kwargs.get("temperature") is not None:
            request_params["temperature"] = kwargs["temperature"]
        if kwargs.get("max_tokens"):
            request_params["max_completion_tokens"] = kwargs["max_tokens"]
        if kwargs.get("format") == "json":
            request_params["response_format"] = {"type": "json_object"}

        retry_config = self.get_retry_config()
        max_attempts = retry_config.max_retries + 1
        last_error: Optional[ProviderError] = None

        for attempt in range(max_attempts):
            try:
                client = self._get_client()
                response = client.chat.completions.create(**request_params)
            except ImportError:
                raise
            except Exception as e:
                last_error = self.classify_error(e)
                debug_logger.log("llm", "OPENAI_ERROR", {
                    "attempt": attempt + 1,
                    "error_class": last_error.error_class.value,
                    "error": str(e),
                }, "ERROR")
                if last_error.retryable and last_error.error_class in retry_config.retry_on \
                        and attempt < max_attempts - 1:
                    self._sleep_before_retry(retry_config, attempt, last_error.retry_after)
                    continue
                break

            message = response.choices[0].message
            usage = response.usage
            return {
                "message": {"role": "assistant", "content": message.content or ""},
                "model": getattr(response, "model", None) or model_name,
                "usage": {
                    "prompt": usage.prompt_tokens if usage else 0,
                    "completion": usage.completion_tokens if usage else 0,
                    "total": usage.total_tokens if usage else 0,
                },
            }

        return {"error": f"OpenAI API error: {last_error.describe() if last_error else 'no response'}"}

    def validate_config(self) -> bool:
        """Validate OpenAI configuration."""
        return bool(self.api_key)

    def get_model_list(self) -> List[str]:
        """Get list of available OpenAI models."""
        try:
            client = self._get_client()
            return [model.id for model in client.models.list()]
        except ImportError:
            raise
        except Exception as e:
            get_logger().log("llm", "OPENAI_MODEL_LIST_ERROR", {"error": str(e)}, "WARNING")
            return []
