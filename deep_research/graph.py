"""LangGraph pipeline: research, then report."""

import logging
import uuid
from typing import Optional

from langgraph.graph import END, StateGraph
from langsmith import traceable

from .agents import write_final_report
from .config import AppConfig, get_config
from .events import emit
from .models import PipelineState
from .rate_gate import ResearchContext
from .research import research

logger = logging.getLogger(__name__)


def build_graph(ctx: ResearchContext) -> StateGraph:
    """Wire the two pipeline stages around a run-scoped context."""
    graph = StateGraph(PipelineState)

    @traceable(name="research_node")
    async def research_node(state: PipelineState) -> PipelineState:
        emit({"type": "phase-start", "run_id": ctx.run_id, "phase": "research", "message": "Researching your topic..."})
        result = await research(
            state["query"],
            state["breadth"],
            state["depth"],
            learnings=state.get("learnings", []),
            visited_urls=state.get("visited_urls", []),
            ctx=ctx,
        )
        return {"learnings": list(result.learnings), "visited_urls": list(result.visited_urls)}

    @traceable(name="report_node")
    async def report_node(state: PipelineState) -> PipelineState:
        learnings = state.get("learnings", [])
        emit({
            "type": "phase-start",
            "run_id": ctx.run_id,
            "phase": "report",
            "message": f"Writing final report from {len(learnings)} learnings...",
        })
        report = await write_final_report(ctx, state["query"], learnings, state.get("visited_urls", []))
        emit({"type": "report-written", "run_id": ctx.run_id, "report_length": len(report)})
        return {"report": report}

    graph.add_node("research", research_node)
    graph.add_node("report", report_node)

    graph.set_entry_point("research")
    graph.add_edge("research", "report")
    graph.add_edge("report", END)

    return graph


async def run_deep_research(
    query: str,
    breadth: int,
    depth: int,
    config: Optional[AppConfig] = None,
    run_id: Optional[str] = None,
) -> PipelineState:
    """Run the full pipeline and return its final state
    (``learnings``, ``visited_urls``, ``report``)."""
    ctx = ResearchContext.from_config(config or get_config(), run_id=run_id or str(uuid.uuid4()))
    app = build_graph(ctx).compile()
    return await app.ainvoke({"run_id": ctx.run_id, "query": query, "breadth": breadth, "depth": depth})
