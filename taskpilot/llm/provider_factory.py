"""Provider factory for creating LLM provider instances."""

from typing import Dict, List, Optional

from taskpilot import config
from taskpilot.debug_logger import get_logger
from taskpilot.llm.providers.base import LLMProvider
from taskpilot.llm.providers.ollama import OllamaProvider
from taskpilot.llm.providers.openai_provider import OpenAIProvider


# Cache for provider instances (singleton pattern)
_provider_cache: Dict[str, LLMProvider] = {}


def get_provider(provider_name: Optional[str] = None, force_new: bool = False) -> LLMProvider:
    """Get a provider instance by name.

    Args:
        provider_name: Name of the provider (ollama, openai).
                      If None, uses config.LLM_PROVIDER.
        force_new: If True, creates a new instance instead of using cached one.

    Returns:
        An instance of the requested provider.
    """
    if provider_name is None:
        provider_name = config.LLM_PROVIDER

    provider_name = provider_name.lower().strip()

    if not force_new and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    if provider_name == "openai":
        provider = OpenAIProvider()
    else:
        # Unknown names (local proxies etc.) speak the Ollama API
        if provider_name != "ollama":
            get_logger().log("llm", "UNKNOWN_PROVIDER", {"provider": provider_name, "fallback": "ollama"}, "WARNING")
        provider = OllamaProvider()

    _provider_cache[provider_name] = provider
    return provider


def detect_provider_from_model(model_str: str) -> str:
    """Auto-detect provider from model name."""
    model_str = model_str.lower().strip()
    # gpt-oss is served by Ollama
    if model_str.startswith("gpt-oss"):
        return "ollama"
    if model_str.startswith("gpt-") or model_str.startswith("o1-"):
        return "openai"
    return "ollama"


def list_available_providers() -> List[str]:
    return ["ollama", "openai"]


def clear_provider_cache():
    """Clear the provider cache.

    Useful for testing or when configuration changes.
    """
    _provider_cache.clear()
