"""Ollama LLM provider implementation."""

from typing import Any, Dict, List, Optional

import requests

from taskpilot import config
from taskpilot.debug_logger import get_logger
from .base import LLMProvider, ErrorClass, ProviderError, classify_error_message


_CHARS_PER_TOKEN_ESTIMATE = 3


def _estimate_tokens(text: Any) -> int:
    """Roughly estimate token usage for a piece of text."""
    return max(0, len(str(text or "")) // _CHARS_PER_TOKEN_ESTIMATE)


class OllamaProvider(LLMProvider):
    """Ollama LLM provider (``/api/chat``)."""

    def __init__(self, base_url: Optional[str] = None):
        super().__init__()
        self.name = "ollama"
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")

    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Send chat request to Ollama."""
        model_name = model or config.OLLAMA_MODEL
        url = f"{self.base_url}/api/chat"

        options = {
            "temperature": kwargs.get("temperature", 0.2),
            "num_ctx": kwargs.get("num_ctx", config.OLLAMA_NUM_CTX),
            "top_p": kwargs.get("top_p", config.OLLAMA_TOP_P),
            "top_k": kwargs.get("top_k", config.OLLAMA_TOP_K),
        }
        if kwargs.get("max_tokens"):
            options["num_predict"] = kwargs["max_tokens"]

        payload = {
            "model": model_name,
            "messages": messages,
            "stream": False,
            "options": options,
        }
        if kwargs.get("format") is not None:
            payload["format"] = kwargs["format"]

        debug_logger = get_logger()
        retry_config = self.get_retry_config()
        max_attempts = retry_config.max_retries + 1

        last_error: Optional[ProviderError] = None
        for attempt in range(max_attempts):
            try:
                resp = requests.post(url, json=payload, timeout=config.OLLAMA_TIMEOUT)
                resp.raise_for_status()
                response = resp.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                last_error = self.classify_error(e)
                debug_logger.log("llm", "OLLAMA_ERROR", {
                    "attempt": attempt + 1,
                    "error_class": last_error.error_class.value,
                    "error": str(e),
                }, "WARNING")
                if last_error.retryable and last_error.error_class in retry_config.retry_on \
                        and attempt < max_attempts - 1:
                    self._sleep_before_retry(retry_config, attempt, last_error.retry_after)
                    continue
                break

            message = response.get("message") or {}
            # Ollama reports usage as prompt_eval_count/eval_count
            if "prompt_eval_count" in response or "eval_count" in response:
                prompt_tokens = int(response.get("prompt_eval_count") or 0)
                completion_tokens = int(response.get("eval_count") or 0)
            else:
                prompt_tokens = sum(_estimate_tokens(m.get("content")) for m in messages)
                completion_tokens = _estimate_tokens(message.get("content"))

            return {
                "message": {"role": "assistant", "content": message.get("content", "")},
                "model": response.get("model", model_name),
                "usage": {
                    "prompt": prompt_tokens,
                    "completion": completion_tokens,
                    "total": prompt_tokens + completion_tokens,
                },
            }

        return {"error": f"Ollama API error: {last_error.describe() if last_error else 'no response'}"}

    def validate_config(self) -> bool:
        """Validate Ollama configuration."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def get_model_list(self) -> List[str]:
        """Get list of available Ollama models."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=10)
            response.raise_for_status()
            data = response.json()
            return [model["name"] for model in data.get("models", [])]
        except (requests.exceptions.RequestException, ValueError, KeyError):
            return []

    def classify_error(self, error: Exception) -> ProviderError:
        """Classify an error into standard ErrorClass.

        requests exception types take precedence over message text.
        """
        if isinstance(error, requests.exceptions.Timeout):
            return ProviderError(ErrorClass.TIMEOUT, str(error), retryable=True, original_error=error)

        if isinstance(error, requests.exceptions.ConnectionError):
            return ProviderError(ErrorClass.NETWORK_ERROR, str(error), retryable=True, original_error=error)

        if isinstance(error, requests.exceptions.HTTPError) and error.response is not None:
            status = error.response.status_code
            if status == 429:
                return ProviderError(ErrorClass.RATE_LIMIT, str(error), retryable=True,
                                     retry_after=60.0, original_error=error)
            if status >= 500:
                return ProviderError(ErrorClass.SERVER_ERROR, str(error), retryable=True, original_error=error)

        return classify_error_message(error)
