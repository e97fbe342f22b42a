"""Backends speaking the OpenAI chat completions protocol.

OpenRouter and Gemini expose OpenAI-compatible endpoints, so they differ
from OpenAI only in base URL, headers and JSON-mode support.
"""

from typing import Any, Dict, Optional

from openai import OpenAI

from .base import ChatRequest, LLMProvider


class OpenAIProvider(LLMProvider):
    name = "openai"
    key_env = "OPENAI_API_KEY"
    key_url = "https://platform.openai.com/api-keys"
    base_url = "https://api.openai.com/v1"
    default_headers: Optional[Dict[str, str]] = None
    supports_json_mode = True

    def _build_client(self, api_key: str) -> OpenAI:
        return OpenAI(api_key=api_key, base_url=self.base_url, default_headers=self.default_headers)

    def request_kwargs(self, request: ChatRequest) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": request.messages,
            "temperature": request.temperature,
        }
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if request.json_mode and self.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    def complete(self, request: ChatRequest) -> str:
        response = self.client.chat.completions.create(**self.request_kwargs(request))
        return response.choices[0].message.content or ""


class OpenRouterProvider(OpenAIProvider):
    # json_object support depends on the routed model
    name = "openrouter"
    key_env = "OPENROUTER_API_KEY"
    key_url = "https://openrouter.ai/keys"
    base_url = "https://openrouter.ai/api/v1"
    default_headers = {
        "HTTP-Referer": "https://deep-research.app",
        "X-Title": "Deep Research App",
    }
    supports_json_mode = False


class GeminiProvider(OpenAIProvider):
    name = "gemini"
    key_env = "GEMINI_API_KEY"
    key_url = "https://aistudio.google.com/apikey"
    base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"
