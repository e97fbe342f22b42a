"""Agent functions for each research stage.

Every agent goes through ``llm.generate_object`` which routes to the
configured provider and validates the reply against a pydantic schema.
"""

import json
import logging
from typing import Callable, List, Optional, Sequence

from langsmith import traceable

from .events import emit
from .llm import StructuredOutputError, extract_json, generate_object, strip_code_fences
from .models import ExtractionResult, FeedbackQuestions, ReportPayload, SerpQuery, SerpQueryList
from .prompts import (
    COMBINED_QUERY_TEMPLATE,
    EXTRACTION_PROMPT,
    FALLBACK_REPORT_TEMPLATE,
    FEEDBACK_PROMPT,
    JSON_ONLY,
    LEARNINGS_BLOCK,
    REPORT_PROMPT,
    SERP_QUERIES_PROMPT,
    system_prompt,
)
from .rate_gate import ResearchContext
from .search import SearchResponse, build_contents

logger = logging.getLogger(__name__)

DEFAULT_NUM_LEARNINGS = 3
DEFAULT_NUM_FOLLOW_UP = 3


# ── helpers ──────────────────────────────────────────────────────────

def numbered(items: Sequence[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def build_combined_query(query: str, questions: Sequence[str], answers: Sequence[str]) -> str:
    """Fold the clarifying Q&A into the prompt that drives the whole run."""
    pairs = []
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else ""
        pairs.append(f"Q: {question}\nA: {answer}")
    return COMBINED_QUERY_TEMPLATE.format(query=query, qa_pairs="\n".join(pairs))


# ── clarifying questions ─────────────────────────────────────────────

@traceable(name="generate_feedback")
async def generate_feedback(ctx: ResearchContext, query: str, num_questions: int = 3) -> List[str]:
    """Ask up to *num_questions* clarifying questions about *query*."""
    prompt = FEEDBACK_PROMPT.format(num_questions=num_questions, query=query, json_only=JSON_ONLY)
    try:
        res = await generate_object(ctx, "feedback", prompt, FeedbackQuestions, system=system_prompt())
        return res.questions[:num_questions]
    except StructuredOutputError as exc:
        logger.warning("Feedback output malformed, trying raw text: %s", exc)
        try:
            payload = json.loads(strip_code_fences(exc.text))
        except json.JSONDecodeError:
            raise exc
        questions = payload.get("questions") if isinstance(payload, dict) else None
        if questions:
            return [str(q) for q in questions][:num_questions]
        raise


# ── query generator ──────────────────────────────────────────────────

@traceable(name="generate_serp_queries")
async def generate_serp_queries(
    ctx: ResearchContext,
    query: str,
    num_queries: int = 3,
    learnings: Optional[Sequence[str]] = None,
) -> List[SerpQuery]:
    """Produce at most *num_queries* (query, goal) pairs for *query*.

    Prior learnings steer deeper levels away from ground already covered.
    A short list is returned as is; it is never padded.
    """
    learnings_block = LEARNINGS_BLOCK.format(learnings="\n".join(learnings)) if learnings else ""
    prompt = SERP_QUERIES_PROMPT.format(
        num_queries=num_queries,
        query=query,
        learnings_block=learnings_block,
        json_only=JSON_ONLY,
    )
    res = await generate_object(ctx, "queries", prompt, SerpQueryList, system=system_prompt())
    queries = [q for q in res.queries if q.query.strip()][:num_queries]
    logger.info("Created %d queries: %s", len(queries), [q.query for q in queries])
    emit({"type": "serp-queries", "run_id": ctx.run_id, "queries": [q.query for q in queries]})
    return queries


# ── result extractor ─────────────────────────────────────────────────

@traceable(name="process_serp_result")
async def process_serp_result(
    ctx: ResearchContext,
    query: str,
    result: SearchResponse,
    num_learnings: int = DEFAULT_NUM_LEARNINGS,
    num_follow_up_questions: int = DEFAULT_NUM_FOLLOW_UP,
) -> ExtractionResult:
    """Turn the raw contents of one search into learnings and follow-ups.

    The model is asked for exact counts, but the reply is taken as is;
    callers must cope with more or fewer items.
    """
    contents = build_contents(result)
    logger.info("Ran %s, found %d contents", query, len(result.items))
    prompt = EXTRACTION_PROMPT.format(
        query=query,
        num_learnings=num_learnings,
        num_follow_up=num_follow_up_questions,
        contents=contents,
        json_only=JSON_ONLY,
    )
    return await generate_object(ctx, "extract", prompt, ExtractionResult, system=system_prompt())


# ── report synthesizer ───────────────────────────────────────────────

def recover_markdown(text: str) -> Optional[str]:
    """Raw text that already is a markdown document."""
    if text and text.lstrip().startswith("#"):
        return text
    return None


def recover_embedded_json(text: str) -> Optional[str]:
    """``reportMarkdown`` from a JSON object buried in the raw text."""
    candidate = extract_json(text or "")
    if not candidate:
        return None
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    body = payload.get("reportMarkdown")
    if isinstance(body, str) and body.strip():
        return body
    return None


RECOVERY_STRATEGIES: List[Callable[[str], Optional[str]]] = [
    recover_markdown,
    recover_embedded_json,
]


def recover_report_body(text: str) -> Optional[str]:
    for strategy in RECOVERY_STRATEGIES:
        body = strategy(text)
        if body is not None:
            return body
    return None


def fallback_report(prompt: str, learnings: Sequence[str]) -> str:
    return FALLBACK_REPORT_TEMPLATE.format(prompt=prompt.strip(), learnings=numbered(learnings))


def append_sources(body: str, visited_urls: Sequence[str]) -> str:
    sources = "\n".join(f"- {url}" for url in visited_urls)
    return f"{body.rstrip()}\n\n## Sources\n\n{sources}"


@traceable(name="write_final_report")
async def write_final_report(
    ctx: ResearchContext,
    prompt: str,
    learnings: Sequence[str],
    visited_urls: Sequence[str],
) -> str:
    """Write the final report. Always returns a document, never raises
    for model failures.

    The body comes from the first of: the structured reply, salvaged raw
    text (markdown, then embedded JSON), or a template built from the
    learnings alone. The Sources section is appended in every case.
    """
    report_prompt = REPORT_PROMPT.format(prompt=prompt, learnings=numbered(learnings), json_only=JSON_ONLY)
    body: Optional[str] = None
    try:
        res = await generate_object(ctx, "report", report_prompt, ReportPayload, system=system_prompt())
        body = res.report_markdown
    except Exception as exc:
        logger.error("Error generating report: %s", exc)
        raw = getattr(exc, "text", None)
        if isinstance(raw, str) and raw:
            body = recover_report_body(raw)
            if body is not None:
                logger.info("Recovered report body from raw model output")

    if body is None:
        logger.warning("Falling back to templated report with %d learnings", len(learnings))
        emit({"type": "report-fallback", "run_id": ctx.run_id, "learnings": len(learnings)})
        body = fallback_report(prompt, learnings)

    return append_sources(body, visited_urls)
