import os

import pytest

os.environ.setdefault("LANGSMITH_TRACING", "false")

from deep_research.config import AppConfig  # noqa: E402
from deep_research.rate_gate import ResearchContext  # noqa: E402


def make_config(**overrides) -> AppConfig:
    values = dict(
        provider="openai",
        model="gpt-4o-mini",
        api_key="sk-test",
        firecrawl_key="fc-test",
        concurrency_limit=1,
        call_interval=0.0,
        deep_call_interval=0.0,
        search_timeout_ms=1000,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config() -> AppConfig:
    return make_config()


@pytest.fixture
def make_ctx():
    def _make(**overrides) -> ResearchContext:
        return ResearchContext.from_config(make_config(**overrides), run_id="test-run")

    return _make
