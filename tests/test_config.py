import pytest

from deep_research import config as config_mod
from deep_research.config import AppConfig, ConfigurationError, load_config

ENV_VARS = [
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_API_KEY",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "HF_TOKEN",
    "FIRECRAWL_API_KEY",
    "CONCURRENCY_LIMIT",
    "RATE_LIMIT_DELAY",
    "CRAWL_LIMIT_DELAY",
    "SEARCH_TIMEOUT_MS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_mod, "_config", None)
    return monkeypatch


def test_defaults(clean_env):
    cfg = load_config()

    assert cfg.provider == "openrouter"
    assert cfg.resolved_model == "anthropic/claude-3-opus-20240229"
    assert cfg.api_key == ""
    assert cfg.concurrency_limit == 1
    assert cfg.call_interval == 6.0
    assert cfg.deep_call_interval == 61.0
    assert cfg.search_timeout_ms == 15000
    assert cfg.temperature == 0.7


def test_provider_specific_key_is_used(clean_env):
    clean_env.setenv("LLM_PROVIDER", "Anthropic")
    clean_env.setenv("ANTHROPIC_API_KEY", "ak")

    cfg = load_config()

    assert cfg.provider == "anthropic"
    assert cfg.api_key == "ak"
    assert cfg.resolved_model == "claude-sonnet-4-20250514"


def test_generic_key_wins_over_provider_key(clean_env):
    clean_env.setenv("LLM_PROVIDER", "openai")
    clean_env.setenv("OPENAI_API_KEY", "specific")
    clean_env.setenv("LLM_API_KEY", "generic")

    assert load_config().api_key == "generic"


def test_pacing_from_env(clean_env):
    clean_env.setenv("CONCURRENCY_LIMIT", "0")
    clean_env.setenv("RATE_LIMIT_DELAY", "1.5")
    clean_env.setenv("CRAWL_LIMIT_DELAY", "10")
    clean_env.setenv("SEARCH_TIMEOUT_MS", "500")
    clean_env.setenv("LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.concurrency_limit == 1
    assert cfg.call_interval == 1.5
    assert cfg.deep_call_interval == 10.0
    assert cfg.search_timeout_ms == 500
    assert cfg.log_level == "DEBUG"


def test_get_config_is_cached_until_reload(clean_env):
    clean_env.setenv("LLM_MODEL", "first")
    first = config_mod.get_config()
    clean_env.setenv("LLM_MODEL", "second")

    assert config_mod.get_config() is first
    assert config_mod.reload_config().model == "second"


def test_overrides_skip_empty_values():
    cfg = AppConfig(provider="openai", model="gpt-4o", api_key="k1", firecrawl_key="f1")

    updated = cfg.with_overrides(api_key="k2", firecrawl_key="", temperature=None)

    assert updated.api_key == "k2"
    assert updated.firecrawl_key == "f1"
    assert updated.temperature == cfg.temperature
    assert cfg.api_key == "k1"


def test_provider_override_resets_model():
    cfg = AppConfig(provider="openai", model="gpt-4o", api_key="k")

    assert cfg.with_overrides(provider="gemini").resolved_model == "gemini-2.5-flash"
    assert cfg.with_overrides(provider="gemini", model="gemini-2.5-pro").model == "gemini-2.5-pro"


def test_require_llm():
    with pytest.raises(ConfigurationError, match="Unknown provider"):
        AppConfig(provider="nope", api_key="k").require_llm()
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        AppConfig(provider="openai").require_llm()
    AppConfig(provider="openai", api_key="k").require_llm()


def test_require_search():
    with pytest.raises(ConfigurationError, match="FIRECRAWL_API_KEY"):
        AppConfig().require_search()
    AppConfig(firecrawl_key="fc").require_search()


def test_public_dict_has_no_secrets():
    public = AppConfig(api_key="secret", firecrawl_key="also-secret").public_dict()

    assert "secret" not in str(public.values())
    assert public["provider"] == "openrouter"


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)
