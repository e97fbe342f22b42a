from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from deep_research.providers import ChatRequest, clear_cache, get_provider, list_providers
from deep_research.providers.anthropic_provider import AnthropicProvider
from deep_research.providers.huggingface_provider import HuggingFaceProvider
from deep_research.providers.openai_provider import GeminiProvider, OpenAIProvider, OpenRouterProvider

REQUEST = ChatRequest(
    model="some-model",
    messages=[{"role": "system", "content": "Be terse"}, {"role": "user", "content": "hi"}],
    temperature=0.2,
    max_tokens=100,
    json_mode=True,
)


@pytest.fixture(autouse=True)
def empty_cache():
    clear_cache()
    yield
    clear_cache()


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_list_providers():
    assert list_providers() == ["openrouter", "openai", "anthropic", "gemini", "huggingface"]


@pytest.mark.parametrize(
    "name, cls",
    [("openai", OpenAIProvider), ("openrouter", OpenRouterProvider), ("gemini", GeminiProvider)],
)
def test_registry_builds_openai_compatible_providers(name, cls):
    provider = get_provider(name, "key")

    assert type(provider) is cls
    assert str(provider.client.base_url).rstrip("/") == cls.base_url.rstrip("/")


def test_providers_are_cached_per_key():
    first = get_provider("openai", "key-a")

    assert get_provider("openai", "key-a") is first
    assert get_provider("openai", "key-b") is not first


def test_unknown_provider():
    with pytest.raises(ValueError, match="Unknown provider"):
        get_provider("mystery", "key")


@pytest.mark.parametrize("cls", [OpenAIProvider, OpenRouterProvider, GeminiProvider, AnthropicProvider])
def test_missing_key_names_the_variable(cls):
    with pytest.raises(ValueError, match=cls.key_env):
        cls("")


def test_openai_sends_json_response_format():
    provider = OpenAIProvider("key")
    provider.client = MagicMock()
    provider.client.chat.completions.create.return_value = _completion('{"ok": true}')

    assert provider.complete(REQUEST) == '{"ok": true}'
    provider.client.chat.completions.create.assert_called_once_with(
        model="some-model",
        messages=REQUEST.messages,
        temperature=0.2,
        max_tokens=100,
        response_format={"type": "json_object"},
    )


@pytest.mark.parametrize("cls", [OpenRouterProvider, HuggingFaceProvider])
def test_backends_without_json_mode_leave_it_to_the_prompt(cls):
    provider = cls.__new__(cls)
    provider.client = MagicMock()
    provider.client.chat.completions.create.return_value = _completion(None)

    assert provider.complete(REQUEST) == ""
    kwargs = provider.client.chat.completions.create.call_args.kwargs
    assert "response_format" not in kwargs
    assert kwargs["max_tokens"] == 100


def test_huggingface_client_routes_through_inference_providers(monkeypatch):
    monkeypatch.setenv("HF_INFERENCE_PROVIDER", "together")
    with patch("deep_research.providers.huggingface_provider.InferenceClient") as client_cls:
        HuggingFaceProvider("hf-key")

    client_cls.assert_called_once_with(api_key="hf-key", provider="together")


def test_openrouter_sends_attribution_headers():
    provider = OpenRouterProvider("key")

    assert provider.client.default_headers["X-Title"] == "Deep Research App"


def test_anthropic_moves_system_messages_to_top_level():
    with patch("deep_research.providers.anthropic_provider.anthropic.Anthropic") as client_cls:
        client = client_cls.return_value
        client.messages.create.return_value = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"a":'),
                SimpleNamespace(type="tool_use", text="ignored"),
                SimpleNamespace(type="text", text=" 1}"),
            ]
        )
        provider = AnthropicProvider("key")

        text = provider.complete(ChatRequest(model="claude", messages=REQUEST.messages, json_mode=True))

    assert text == '{"a": 1}'
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
    assert kwargs["system"] == "Be terse\n\nRespond with valid JSON only."
    assert kwargs["max_tokens"] == AnthropicProvider.DEFAULT_MAX_TOKENS
    client_cls.assert_called_once_with(api_key="key")
