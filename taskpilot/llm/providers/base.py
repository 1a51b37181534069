"""Base interface for LLM providers."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from taskpilot import config


class ErrorClass(Enum):
    """Standardized error categories across all providers."""
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    AUTH_ERROR = "auth_error"
    MODEL_NOT_FOUND = "model_not_found"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


# Message prefixes that keep provider errors recognizable to the step retry policy
ERROR_CLASS_LABELS = {
    ErrorClass.RATE_LIMIT: "rate limit",
    ErrorClass.TIMEOUT: "timeout",
    ErrorClass.NETWORK_ERROR: "network error",
    ErrorClass.CONTEXT_LENGTH_EXCEEDED: "context length exceeded",
    ErrorClass.SERVER_ERROR: "temporary failure",
}


@dataclass
class ProviderError:
    """Standardized error representation."""
    error_class: ErrorClass
    message: str
    retryable: bool
    retry_after: Optional[float] = None  # Seconds to wait before retry
    original_error: Optional[Exception] = None

    def describe(self) -> str:
        label = ERROR_CLASS_LABELS.get(self.error_class)
        return f"{label}: {self.message}" if label else self.message


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int
    base_backoff: float  # seconds
    max_backoff: float  # seconds
    exponential: bool = True
    retry_on: List[ErrorClass] = field(default_factory=lambda: [
        ErrorClass.RATE_LIMIT,
        ErrorClass.TIMEOUT,
        ErrorClass.SERVER_ERROR,
        ErrorClass.NETWORK_ERROR,
    ])

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based), capped."""
        if self.exponential:
            delay = self.base_backoff * (2 ** attempt)
        else:
            delay = self.base_backoff * (attempt + 1)
        return min(self.max_backoff, delay)


def classify_error_message(error: Exception) -> ProviderError:
    """Classify an error by its message text."""
    error_str = str(error).lower()

    def build(error_class: ErrorClass, retryable: bool, retry_after: Optional[float] = None) -> ProviderError:
        return ProviderError(
            error_class=error_class,
            message=str(error),
            retryable=retryable,
            retry_after=retry_after,
            original_error=error,
        )

    if "context length" in error_str or "too long" in error_str or "maximum context" in error_str:
        return build(ErrorClass.CONTEXT_LENGTH_EXCEEDED, False)
    if "timeout" in error_str or "timed out" in error_str:
        return build(ErrorClass.TIMEOUT, True)
    if "rate limit" in error_str or "too many requests" in error_str or "429" in error_str:
        return build(ErrorClass.RATE_LIMIT, True, retry_after=60.0)
    if any(keyword in error_str for keyword in ["connection", "network", "unreachable", "refused"]):
        return build(ErrorClass.NETWORK_ERROR, True)
    if "401" in error_str or "unauthorized" in error_str or "authentication" in error_str or "api key" in error_str:
        return build(ErrorClass.AUTH_ERROR, False)
    if "404" in error_str or "not found" in error_str or "does not exist" in error_str:
        return build(ErrorClass.MODEL_NOT_FOUND, False)
    if "400" in error_str or "invalid" in error_str or "bad request" in error_str:
        return build(ErrorClass.INVALID_REQUEST, False)
    if any(code in error_str for code in ["500", "502", "503", "504"]) or "server error" in error_str:
        return build(ErrorClass.SERVER_ERROR, True)
    return build(ErrorClass.UNKNOWN, False)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Providers turn a list of chat messages into one assistant message. They
    never raise for transport failures: ``chat`` returns ``{"error": ...}``
    instead, with the message prefixed by the error category.
    """

    def __init__(self):
        self.name = "base"

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Make a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model name to use (provider-specific)
            **kwargs: temperature, max_tokens, format ("json")

        Returns:
            Dict with 'message', 'model' and 'usage' keys, or 'error'
        """
        pass

    @abstractmethod
    def validate_config(self) -> bool:
        """Validate that the provider is configured correctly."""
        pass

    @abstractmethod
    def get_model_list(self) -> List[str]:
        """Get list of available models for this provider."""
        pass

    def classify_error(self, error: Exception) -> ProviderError:
        """Classify an error into a standard ErrorClass."""
        return classify_error_message(error)

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration for this provider."""
        return RetryConfig(
            max_retries=max(0, config.LLM_MAX_RETRIES),
            base_backoff=config.LLM_RETRY_BACKOFF_SECONDS,
            max_backoff=config.LLM_RETRY_BACKOFF_MAX_SECONDS,
        )

    def _sleep_before_retry(self, retry_config: RetryConfig, attempt: int, retry_after: Optional[float] = None):
        """Sleep with capped backoff before retry."""
        delay = retry_config.delay_for(attempt)
        if retry_after is not None:
            delay = min(retry_config.max_backoff, max(delay, retry_after))
        if delay > 0:
            time.sleep(delay)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
