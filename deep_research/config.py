"""Centralised configuration.

Provider, model, credentials and the research run's pacing are driven by
environment variables. HTTP callers may pass their own credentials per
request; those are layered on top with ``AppConfig.with_overrides``.

Env vars
--------
LLM_PROVIDER           Provider (openrouter / openai / anthropic / gemini / huggingface)
LLM_MODEL              Model   (auto-selected per provider if empty)
LLM_API_KEY            Key for the chosen provider; falls back to the
                       provider-specific variable below
LLM_TEMPERATURE        Sampling temperature
LLM_MAX_TOKENS         Output token cap

OPENROUTER_API_KEY     OpenRouter
OPENAI_API_KEY         OpenAI
ANTHROPIC_API_KEY      Anthropic
GEMINI_API_KEY         Google Gemini
HF_TOKEN               HuggingFace
HF_INFERENCE_PROVIDER  HuggingFace router backend (default "auto")

FIRECRAWL_API_KEY      Firecrawl search

CONCURRENCY_LIMIT      Branches allowed in flight across the whole tree
RATE_LIMIT_DELAY       Seconds between search calls
CRAWL_LIMIT_DELAY      Seconds between recursive (deeper) calls
SEARCH_TIMEOUT_MS      Per-search timeout
LOG_LEVEL              Root log level for the CLI and server
"""

import os
from dataclasses import dataclass, replace
from typing import Dict, Optional

from dotenv import load_dotenv

load_dotenv()

# ---- sensible defaults per provider ----
DEFAULT_MODELS: Dict[str, str] = {
    "openrouter": "anthropic/claude-3-opus-20240229",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "gemini": "gemini-2.5-flash",
    "huggingface": "Qwen/Qwen2.5-72B-Instruct",
}
# All available models per provider (for UI/config)
AVAILABLE_MODELS: Dict[str, list] = {
    "openrouter": [
        "openai/gpt-4o",
        "openai/gpt-4o-mini",
        "anthropic/claude-3-opus-20240229",
        "anthropic/claude-3-sonnet-20240229",
        "google/gemini-pro",
        "mistral/mistral-large-latest",
        "meta-llama/llama-2-70b-chat",
    ],
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    "anthropic": ["claude-sonnet-4-20250514", "claude-opus-4-20250514"],
    "gemini": ["gemini-2.5-flash", "gemini-2.5-pro"],
    "huggingface": ["Qwen/Qwen2.5-72B-Instruct", "meta-llama/Llama-3.3-70B-Instruct"],
}
PROVIDER_KEY_VARS: Dict[str, str] = {
    "openrouter": "OPENROUTER_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "huggingface": "HF_TOKEN",
}

# Firecrawl free plan: 10 searches/minute, 1 crawl/minute.
DEFAULT_CALL_INTERVAL = 6.0
DEFAULT_DEEP_CALL_INTERVAL = 61.0


class ConfigurationError(ValueError):
    """A required credential or setting is missing. Never retried."""


@dataclass(frozen=True)
class AppConfig:
    provider: str = "openrouter"
    model: str = ""
    api_key: str = ""
    firecrawl_key: str = ""
    temperature: float = 0.7
    max_tokens: int = 4000
    concurrency_limit: int = 1
    call_interval: float = DEFAULT_CALL_INTERVAL
    deep_call_interval: float = DEFAULT_DEEP_CALL_INTERVAL
    search_timeout_ms: int = 15000
    log_level: str = "INFO"

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, "")

    def with_overrides(self, **overrides) -> "AppConfig":
        """Return a copy with every non-empty override applied."""
        changes = {k: v for k, v in overrides.items() if v not in (None, "")}
        if "provider" in changes and "model" not in changes:
            changes["model"] = ""
        return replace(self, **changes)

    def require_llm(self) -> None:
        if self.provider not in DEFAULT_MODELS:
            raise ConfigurationError(
                f"Unknown provider: '{self.provider}'. "
                f"Supported: {', '.join(DEFAULT_MODELS)}"
            )
        if not self.api_key:
            raise ConfigurationError(
                f"API key is required for provider '{self.provider}' "
                f"(set LLM_API_KEY or {PROVIDER_KEY_VARS[self.provider]})"
            )

    def require_search(self) -> None:
        if not self.firecrawl_key:
            raise ConfigurationError("Firecrawl API key is required (set FIRECRAWL_API_KEY)")

    def public_dict(self) -> Dict[str, object]:
        """Configuration without secrets."""
        return {
            "provider": self.provider,
            "model": self.resolved_model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "concurrency_limit": self.concurrency_limit,
            "call_interval": self.call_interval,
            "deep_call_interval": self.deep_call_interval,
            "search_timeout_ms": self.search_timeout_ms,
        }


def load_config() -> AppConfig:
    provider = os.getenv("LLM_PROVIDER", "openrouter").strip().lower()
    key_var = PROVIDER_KEY_VARS.get(provider, "")
    api_key = os.getenv("LLM_API_KEY") or (os.getenv(key_var, "") if key_var else "")

    return AppConfig(
        provider=provider,
        model=os.getenv("LLM_MODEL", ""),
        api_key=api_key,
        firecrawl_key=os.getenv("FIRECRAWL_API_KEY", ""),
        temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
        max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4000")),
        concurrency_limit=max(1, int(os.getenv("CONCURRENCY_LIMIT", "1"))),
        call_interval=float(os.getenv("RATE_LIMIT_DELAY", str(DEFAULT_CALL_INTERVAL))),
        deep_call_interval=float(os.getenv("CRAWL_LIMIT_DELAY", str(DEFAULT_DEEP_CALL_INTERVAL))),
        search_timeout_ms=int(os.getenv("SEARCH_TIMEOUT_MS", "15000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> AppConfig:
    global _config
    _config = load_config()
    return _config
