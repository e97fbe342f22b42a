"""FastAPI server fronting the research engine.

Thin endpoints: they validate input, pass request-level credentials
through to the engine and map failures to status codes. The SSE stream
relays engine events while a run is in progress.
"""

import asyncio
import json
import logging
import os
import queue
import uuid
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .agents import build_combined_query, generate_feedback
from .config import AVAILABLE_MODELS, AppConfig, ConfigurationError, get_config
from .events import subscribe
from .graph import run_deep_research
from .logs import configure_logging
from .providers import list_providers
from .rate_gate import ResearchContext

load_dotenv()
configure_logging(get_config().log_level)

logger = logging.getLogger(__name__)

STREAM_BATCH = 50
STREAM_POLL_SECONDS = 0.1

app = FastAPI(
    title="Deep Research API",
    description="Recursive web research with multi-provider LLM synthesis",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        os.environ.get("FRONTEND_URL", "http://localhost:3000"),
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── request / response models ───────────────────────────────────────

class LLMConfigIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    firecrawl_key: Optional[str] = Field(default=None, alias="firecrawlKey")
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    num_questions: int = Field(default=3, ge=1, le=10, alias="numQuestions")
    llm_config: Optional[LLMConfigIn] = Field(default=None, alias="llmConfig")


class ResearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    breadth: int = Field(default=2, ge=1, le=5)
    depth: int = Field(default=4, ge=1, le=10)
    follow_up_questions: List[str] = Field(default_factory=list, alias="followUpQuestions")
    answers: List[str] = Field(default_factory=list)
    llm_config: Optional[LLMConfigIn] = Field(default=None, alias="llmConfig")


class ResearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report_id: str = Field(alias="reportId")
    report: str
    learnings: List[str]
    visited_urls: List[str] = Field(alias="visitedUrls")


# ── helpers ──────────────────────────────────────────────────────────

def _request_config(llm_config: Optional[LLMConfigIn]) -> AppConfig:
    cfg = get_config()
    if llm_config is None:
        return cfg
    return cfg.with_overrides(
        provider=llm_config.provider,
        model=llm_config.model,
        api_key=llm_config.api_key,
        firecrawl_key=llm_config.firecrawl_key,
        temperature=llm_config.temperature,
        max_tokens=llm_config.max_tokens,
    )


def _status_for(error_msg: str) -> int:
    lower = error_msg.lower()
    if "rate limit" in lower or "429" in lower:
        return 429
    if "no auth credentials" in lower or "401" in lower or "unauthorized" in lower:
        return 401
    return 500


def _error_message(status: int, error_msg: str) -> str:
    if status == 429:
        return "Rate limit exceeded. Please wait a few seconds and try again."
    if status == 401:
        return "Authentication failed. Please check your API keys."
    return error_msg or "Research failed"


def serialize_event(event_type: str, data: dict) -> str:
    payload = json.dumps({"type": event_type, **data}, default=str)
    return f"data: {payload}\n\n"


# ── routes ───────────────────────────────────────────────────────────

@app.post("/api/feedback")
async def feedback(request: FeedbackRequest):
    cfg = _request_config(request.llm_config)
    try:
        cfg.require_llm()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        return await generate_feedback(ResearchContext.from_config(cfg), request.query, request.num_questions)
    except Exception as exc:
        logger.error("Feedback generation failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to generate feedback")


def _validated_run(request: ResearchRequest) -> AppConfig:
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="A research question is required")
    cfg = _request_config(request.llm_config)
    try:
        cfg.require_llm()
        cfg.require_search()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return cfg


@app.post("/api/research", response_model=ResearchResponse, response_model_by_alias=True)
async def start_research(request: ResearchRequest):
    cfg = _validated_run(request)
    combined = build_combined_query(request.query, request.follow_up_questions, request.answers)
    report_id = uuid.uuid4().hex

    try:
        state = await run_deep_research(combined, request.breadth, request.depth, config=cfg, run_id=report_id)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.error("Error during research: %s", exc)
        status = _status_for(str(exc))
        return JSONResponse(status_code=status, content={"error": _error_message(status, str(exc))})

    return ResearchResponse(
        report_id=report_id,
        report=state.get("report", ""),
        learnings=state.get("learnings", []),
        visited_urls=state.get("visited_urls", []),
    )


async def research_stream_generator(request: ResearchRequest, cfg: AppConfig):
    """Relay one run's events as SSE frames, then its report or error."""
    run_id = uuid.uuid4().hex
    combined = build_combined_query(request.query, request.follow_up_questions, request.answers)

    run = None
    try:
        with subscribe(run_id) as events:
            yield serialize_event("phase-update", {
                "phase": "init",
                "message": f"Starting research (provider: {cfg.provider}, model: {cfg.resolved_model})",
                "run_id": run_id,
            })
            run = asyncio.create_task(
                run_deep_research(combined, request.breadth, request.depth, config=cfg, run_id=run_id)
            )
            while not (run.done() and events.empty()):
                for _ in range(STREAM_BATCH):
                    try:
                        evt = events.get_nowait()
                    except queue.Empty:
                        break
                    yield serialize_event(evt.get("type", "log"), {k: v for k, v in evt.items() if k != "type"})
                await asyncio.sleep(STREAM_POLL_SECONDS)
    finally:
        # Closed early when the client disconnects; the run stops with it.
        if run is not None and not run.done():
            run.cancel()

    try:
        state = run.result()
    except Exception as exc:
        status = _status_for(str(exc))
        yield serialize_event("error", {"error": _error_message(status, str(exc)), "status": status})
        return

    yield serialize_event("final-result", {"content": state.get("report", "")})
    yield serialize_event("complete", {
        "message": "Research complete!",
        "run_id": run_id,
        "total_learnings": len(state.get("learnings", [])),
        "total_sources": len(state.get("visited_urls", [])),
    })


@app.post("/api/research/stream")
async def stream_research(request: ResearchRequest):
    cfg = _validated_run(request)
    return StreamingResponse(
        research_stream_generator(request, cfg),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )


@app.get("/api/config")
async def get_app_config():
    """Return current configuration (no secrets)."""
    return {
        **get_config().public_dict(),
        "available_providers": list_providers(),
        "available_models": AVAILABLE_MODELS,
    }


@app.get("/api/health")
async def health_check():
    cfg = get_config()
    return {
        "status": "healthy",
        "version": app.version,
        "provider": cfg.provider,
        "model": cfg.resolved_model,
        "env_check": {
            "llm_key": bool(cfg.api_key),
            "firecrawl_key": bool(cfg.firecrawl_key),
            "langsmith": bool(os.environ.get("LANGSMITH_API_KEY")),
        },
    }
