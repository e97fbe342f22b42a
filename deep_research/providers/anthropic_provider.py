"""Anthropic Messages API.

System prompts go in a top-level ``system`` field rather than the message
list, and there is no JSON response format, so JSON mode becomes an extra
system instruction.
"""

from typing import Any, Dict, List

import anthropic

from .base import ChatRequest, LLMProvider


class AnthropicProvider(LLMProvider):
    name = "anthropic"
    key_env = "ANTHROPIC_API_KEY"
    key_url = "https://console.anthropic.com/settings/keys"

    # the API rejects requests without an explicit cap
    DEFAULT_MAX_TOKENS = 4096
    JSON_INSTRUCTION = "Respond with valid JSON only."

    def _build_client(self, api_key: str) -> anthropic.Anthropic:
        return anthropic.Anthropic(api_key=api_key)

    def complete(self, request: ChatRequest) -> str:
        system: List[str] = [m["content"] for m in request.messages if m["role"] == "system"]
        turns = [{"role": m["role"], "content": m["content"]} for m in request.messages if m["role"] != "system"]
        if request.json_mode:
            system.append(self.JSON_INSTRUCTION)

        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": turns or [{"role": "user", "content": "Please respond."}],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens or self.DEFAULT_MAX_TOKENS,
        }
        if system:
            kwargs["system"] = "\n\n".join(system)

        response = self.client.messages.create(**kwargs)
        return "".join(block.text for block in response.content if block.type == "text")
