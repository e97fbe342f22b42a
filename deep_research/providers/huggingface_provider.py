"""HuggingFace Inference router.

``InferenceClient`` mirrors the OpenAI ``chat.completions`` surface, so
requests are built the same way; only the client differs.
"""

import os

from huggingface_hub import InferenceClient

from .openai_provider import OpenAIProvider


class HuggingFaceProvider(OpenAIProvider):
    name = "huggingface"
    key_env = "HF_TOKEN"
    key_url = "https://huggingface.co/settings/tokens"
    supports_json_mode = False

    def _build_client(self, api_key: str) -> InferenceClient:
        # novita, sambanova, together, ... or "auto" to let the router pick
        return InferenceClient(api_key=api_key, provider=os.getenv("HF_INFERENCE_PROVIDER", "auto"))
