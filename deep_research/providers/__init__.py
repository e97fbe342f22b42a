"""Chat model backends, looked up by name.

One instance is kept per (provider, key) pair; the key itself is only
stored as a digest in the cache index.
"""

import hashlib
from typing import Dict, List, Type

from .anthropic_provider import AnthropicProvider
from .base import ChatRequest, LLMProvider
from .huggingface_provider import HuggingFaceProvider
from .openai_provider import GeminiProvider, OpenAIProvider, OpenRouterProvider

PROVIDERS: Dict[str, Type[LLMProvider]] = {
    cls.name: cls
    for cls in (OpenRouterProvider, OpenAIProvider, AnthropicProvider, GeminiProvider, HuggingFaceProvider)
}

_cache: Dict[str, LLMProvider] = {}


def get_provider(name: str, api_key: str) -> LLMProvider:
    cls = PROVIDERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown provider: '{name}'. Supported: {', '.join(PROVIDERS)}")
    cache_key = f"{name}:{hashlib.sha256(api_key.encode()).hexdigest()[:16]}"
    if cache_key not in _cache:
        _cache[cache_key] = cls(api_key)
    return _cache[cache_key]


def clear_cache() -> None:
    _cache.clear()


def list_providers() -> List[str]:
    return list(PROVIDERS)


__all__ = ["ChatRequest", "LLMProvider", "PROVIDERS", "clear_cache", "get_provider", "list_providers"]
