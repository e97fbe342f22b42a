"""Structured generation on top of the provider registry.

``generate_object`` asks the configured model for JSON matching a pydantic
schema. Provider SDKs are synchronous, so each call runs in a worker
thread. When the model answers with something that does not validate,
``StructuredOutputError`` carries the raw text so callers can try to
salvage it.
"""

import asyncio
import json
import logging
import re
import time
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .events import emit
from .providers import ChatRequest, get_provider
from .rate_gate import ResearchContext

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)


class StructuredOutputError(Exception):
    """The model replied, but not with an object matching the schema."""

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.text = text


# ── text helpers ─────────────────────────────────────────────────────

def clean_think_tags(content: str) -> str:
    if "<think>" in content and "</think>" in content:
        return re.sub(r"<think>.*?</think>", "", content, flags=re.DOTALL).strip()
    return content


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json(text: str) -> str:
    """Return the outermost ``{...}`` span of *text*, or ``""``."""
    text = text.strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return ""


def parse_structured(text: str, schema: Type[T]) -> T:
    cleaned = strip_code_fences(clean_think_tags(text))
    candidate = extract_json(cleaned)
    if not candidate:
        raise StructuredOutputError("No JSON object found in model output", text=text)
    try:
        return schema.model_validate_json(candidate)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Model output did not match {schema.__name__}: {exc.error_count()} error(s)",
            text=text,
        ) from exc


def schema_hint(schema: Type[BaseModel]) -> str:
    return json.dumps(schema.model_json_schema(by_alias=True))


# ── unified LLM call ────────────────────────────────────────────────

MAX_ATTEMPTS = 3
RETRY_BASE_SECONDS = 2.0

# a bad or missing key fails the same way on every attempt
_AUTH_MARKERS = ("401", "403", "invalid api key", "unauthorized")


def _is_auth_error(exc: Exception) -> bool:
    lower = str(exc).lower()
    return any(marker in lower for marker in _AUTH_MARKERS)


def _chat(
    ctx: ResearchContext,
    role: str,
    messages: List[Dict[str, str]],
    temperature: Optional[float] = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """Blocking chat call with retries. Runs in a worker thread."""
    cfg = ctx.config
    provider = get_provider(cfg.provider, cfg.api_key)
    request = ChatRequest(
        model=cfg.resolved_model,
        messages=messages,
        temperature=temperature if temperature is not None else cfg.temperature,
        max_tokens=cfg.max_tokens,
        json_mode=True,
    )
    tags = {"run_id": ctx.run_id, "provider": cfg.provider, "model": request.model, "role": role}

    attempt = 1
    while True:
        emit({"type": "llm-call-start", "attempt": attempt, **tags})
        try:
            text = provider.complete(request)
        except Exception as exc:
            emit({"type": "llm-call-error", "attempt": attempt, "error": str(exc)[:200], **tags})
            if _is_auth_error(exc) or attempt >= max_attempts:
                raise
            delay = RETRY_BASE_SECONDS * 2 ** (attempt - 1)
            logger.warning("LLM call [%s] failed (attempt %d/%d), retrying in %.0fs: %s",
                           role, attempt, max_attempts, delay, str(exc)[:200])
            time.sleep(delay)
            attempt += 1
            continue
        emit({"type": "llm-call-end", "output_length": len(text), **tags})
        return text


async def generate_object(
    ctx: ResearchContext,
    role: str,
    prompt: str,
    schema: Type[T],
    system: Optional[str] = None,
    temperature: Optional[float] = None,
) -> T:
    """Generate an instance of *schema*.

    Raises ``StructuredOutputError`` when the reply cannot be validated;
    transport errors propagate as raised by the provider SDK.
    """
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({
        "role": "user",
        "content": f"{prompt}\n\nThe JSON must satisfy this JSON Schema:\n{schema_hint(schema)}",
    })
    raw = await asyncio.to_thread(_chat, ctx, role, messages, temperature)
    return parse_structured(raw, schema)
