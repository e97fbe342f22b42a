from unittest.mock import AsyncMock, patch

import pytest

from deep_research.agents import (
    build_combined_query,
    generate_feedback,
    generate_serp_queries,
    numbered,
    process_serp_result,
)
from deep_research.llm import StructuredOutputError
from deep_research.models import ExtractionResult, FeedbackQuestions, SerpQuery, SerpQueryList
from deep_research.search import SearchItem, SearchResponse


def _queries(*texts):
    return SerpQueryList(queries=[SerpQuery(query=t, research_goal=f"goal for {t}") for t in texts])


@pytest.mark.asyncio
async def test_serp_queries_are_truncated_to_requested_count(make_ctx):
    mock = AsyncMock(return_value=_queries("a", "b", "c", "d", "e"))
    with patch("deep_research.agents.generate_object", new=mock):
        queries = await generate_serp_queries(make_ctx(), "topic", num_queries=3)

    assert [q.query for q in queries] == ["a", "b", "c"]
    assert queries[0].research_goal == "goal for a"


@pytest.mark.asyncio
async def test_blank_serp_queries_are_dropped(make_ctx):
    mock = AsyncMock(return_value=_queries("a", "  ", "b"))
    with patch("deep_research.agents.generate_object", new=mock):
        queries = await generate_serp_queries(make_ctx(), "topic", num_queries=3)

    assert [q.query for q in queries] == ["a", "b"]


@pytest.mark.asyncio
async def test_prior_learnings_are_included_in_query_prompt(make_ctx):
    mock = AsyncMock(return_value=_queries("a"))
    with patch("deep_research.agents.generate_object", new=mock):
        await generate_serp_queries(make_ctx(), "topic", num_queries=2, learnings=["EV sales doubled", "Grid is old"])

    prompt = mock.await_args.args[2]
    assert "Generate 2 different search queries" in prompt
    assert "Use these learnings" in prompt
    assert "EV sales doubled\nGrid is old" in prompt


@pytest.mark.asyncio
async def test_first_level_prompt_has_no_learnings_block(make_ctx):
    mock = AsyncMock(return_value=_queries("a"))
    with patch("deep_research.agents.generate_object", new=mock):
        await generate_serp_queries(make_ctx(), "topic", num_queries=2)

    assert "Use these learnings" not in mock.await_args.args[2]


@pytest.mark.asyncio
async def test_extraction_prompt_carries_counts_and_first_contents(make_ctx):
    response = SearchResponse(items=[SearchItem(url=f"https://s{i}", content=f"page {i}") for i in range(5)])
    reply = ExtractionResult(learnings=["x", "y", "z", "w"], follow_up_questions=["q"])
    mock = AsyncMock(return_value=reply)

    with patch("deep_research.agents.generate_object", new=mock):
        result = await process_serp_result(make_ctx(), "query", response, num_follow_up_questions=2)

    prompt = mock.await_args.args[2]
    assert "exactly 3 learnings and exactly 2 follow-up questions" in prompt
    assert "page 0\npage 1\npage 2" in prompt
    assert "page 3" not in prompt
    # counts are hints only; the reply is passed through
    assert result is reply


@pytest.mark.asyncio
async def test_feedback_is_truncated(make_ctx):
    mock = AsyncMock(return_value=FeedbackQuestions(questions=["a?", "b?", "c?", "d?"]))
    with patch("deep_research.agents.generate_object", new=mock):
        questions = await generate_feedback(make_ctx(), "topic", num_questions=2)

    assert questions == ["a?", "b?"]


@pytest.mark.asyncio
async def test_feedback_recovers_from_fenced_json(make_ctx):
    raw = '```json\n{"questions": ["Which region?", "What timeframe?"]}\n```'
    mock = AsyncMock(side_effect=StructuredOutputError("invalid", text=raw))
    with patch("deep_research.agents.generate_object", new=mock):
        questions = await generate_feedback(make_ctx(), "topic")

    assert questions == ["Which region?", "What timeframe?"]


@pytest.mark.asyncio
async def test_feedback_reraises_when_raw_text_is_unusable(make_ctx):
    mock = AsyncMock(side_effect=StructuredOutputError("invalid", text="I have no questions"))
    with patch("deep_research.agents.generate_object", new=mock):
        with pytest.raises(StructuredOutputError):
            await generate_feedback(make_ctx(), "topic")


def test_combined_query_pairs_questions_with_answers():
    text = build_combined_query("EV market", ["Region?", "Years?"], ["Europe"])

    assert text == (
        "Initial Query: EV market\n"
        "Follow-up Questions and Answers:\n"
        "Q: Region?\nA: Europe\n"
        "Q: Years?\nA: "
    )


def test_combined_query_without_questions():
    assert build_combined_query("EV market", [], []) == "Initial Query: EV market\nFollow-up Questions and Answers:\n"


def test_numbered():
    assert numbered(["a", "b"]) == "1. a\n2. b"
    assert numbered([]) == ""
