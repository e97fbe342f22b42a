"""Recursive research: the orchestrator and its branch executor.

``deep_research`` expands one task into ``breadth`` search queries and runs
each as a branch. A branch searches, extracts learnings and follow-up
questions, and, while depth remains, recurses with half the breadth and
one less depth. Branches share one semaphore and one rate gate for the
whole run, carried by ``ResearchContext``.

A failing branch contributes nothing and never takes its siblings down.
Configuration errors escape, as does a failure to generate the first
level of queries.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from langsmith import traceable

from . import agents, search
from .config import AppConfig, ConfigurationError, get_config
from .events import emit
from .models import ResearchResult, ResearchTask, SerpQuery
from .prompts import NEXT_QUERY_TEMPLATE
from .rate_gate import ResearchContext

logger = logging.getLogger(__name__)

GOAL_PLACEHOLDER = "Not specified"


def build_next_query(research_goal: Optional[str], follow_up_questions: Sequence[str]) -> str:
    """Topic text for the next level: the goal plus one follow-up per line."""
    return NEXT_QUERY_TEMPLATE.format(
        research_goal=research_goal or GOAL_PLACEHOLDER,
        follow_up_questions="\n".join(follow_up_questions),
    ).strip()


async def run_branch(ctx: ResearchContext, serp_query: SerpQuery, task: ResearchTask) -> ResearchResult:
    """Run one query end to end; an empty result stands in for any failure."""
    try:
        async with ctx.semaphore:
            await ctx.gate.wait_for_call()
            logger.info("Processing query: %s", serp_query.query)
            emit({"type": "branch-start", "run_id": ctx.run_id, "query": serp_query.query, "depth": task.depth})
            result = await search.search(
                serp_query.query,
                api_key=ctx.config.firecrawl_key,
                timeout_ms=ctx.config.search_timeout_ms,
            )
            extraction = await agents.process_serp_result(
                ctx,
                serp_query.query,
                result,
                num_follow_up_questions=task.child_breadth,
            )

        own = ResearchResult(tuple(extraction.learnings), tuple(result.urls))
        accumulated = task.accumulated.merge(own)
        emit({
            "type": "branch-complete",
            "run_id": ctx.run_id,
            "query": serp_query.query,
            "learnings": len(own.learnings),
            "urls": len(own.visited_urls),
        })

        if task.child_depth <= 0:
            return accumulated

        logger.info("Researching deeper, breadth: %s, depth: %s", task.child_breadth, task.child_depth)
        emit({
            "type": "research-deeper",
            "run_id": ctx.run_id,
            "query": serp_query.query,
            "breadth": task.child_breadth,
            "depth": task.child_depth,
        })
        await ctx.gate.wait_for_deep_call()
        child = task.child(
            build_next_query(serp_query.research_goal, extraction.follow_up_questions),
            accumulated,
            goal=serp_query.research_goal,
        )
        return await deep_research(ctx, child)

    except ConfigurationError:
        raise
    except Exception as exc:
        logger.warning("Error running query: %s: %s", serp_query.query, exc)
        emit({"type": "branch-failed", "run_id": ctx.run_id, "query": serp_query.query, "error": str(exc)[:200]})
        return ResearchResult()


async def deep_research(ctx: ResearchContext, task: ResearchTask, *, root: bool = False) -> ResearchResult:
    """Expand *task* into a merged ``ResearchResult``.

    A task at depth 0 does no work. If query generation fails below the
    root, the level degrades to the task's own accumulators. At the root
    there is nothing to degrade to, so the error propagates (a rejected
    key or a rate limit must reach the caller).
    """
    if task.depth <= 0:
        return task.accumulated

    try:
        serp_queries = await agents.generate_serp_queries(
            ctx,
            task.query,
            num_queries=task.breadth,
            learnings=task.learnings_so_far,
        )
    except ConfigurationError:
        raise
    except Exception as exc:
        if root:
            raise
        logger.warning("Query generation failed for '%s': %s", task.query[:80], exc)
        emit({"type": "branch-failed", "run_id": ctx.run_id, "query": task.query[:200], "error": str(exc)[:200]})
        return task.accumulated

    outcomes = await asyncio.gather(
        *(run_branch(ctx, q, task) for q in serp_queries),
        return_exceptions=True,
    )

    results: List[ResearchResult] = []
    for query, outcome in zip(serp_queries, outcomes):
        if isinstance(outcome, ConfigurationError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning("Branch '%s' escaped isolation: %s", query.query, outcome)
            continue
        results.append(outcome)

    return task.accumulated.merge(*results)


@traceable(name="research")
async def research(
    query: str,
    breadth: int,
    depth: int,
    *,
    app_config: Optional[AppConfig] = None,
    learnings: Sequence[str] = (),
    visited_urls: Sequence[str] = (),
    ctx: Optional[ResearchContext] = None,
) -> ResearchResult:
    """Top-level entry point.

    Credentials are checked before any network call; a missing one raises
    ``ConfigurationError``. A failure to plan the first level propagates;
    everything below it degrades to partial results.
    """
    if ctx is None:
        ctx = ResearchContext.from_config(app_config or get_config())
    ctx.config.require_llm()
    ctx.config.require_search()

    task = ResearchTask(
        query=query,
        breadth=breadth,
        depth=depth,
        learnings_so_far=tuple(learnings),
        sources_so_far=tuple(visited_urls),
    )
    emit({"type": "research-start", "run_id": ctx.run_id, "breadth": breadth, "depth": depth})
    result = await deep_research(ctx, task, root=True)
    logger.info("Research finished: %d learnings, %d urls", len(result.learnings), len(result.visited_urls))
    emit({
        "type": "research-complete",
        "run_id": ctx.run_id,
        "learnings": len(result.learnings),
        "urls": len(result.visited_urls),
    })
    return result
