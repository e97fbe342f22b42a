"""Data models for the research engine."""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, TypedDict

from pydantic import BaseModel, ConfigDict, Field


# ---------- Pydantic models for structured LLM output ----------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SerpQuery(_CamelModel):
    query: str = Field(..., description="The search query")
    research_goal: Optional[str] = Field(
        default=None,
        alias="researchGoal",
        description="What this query is meant to find out, and how to go deeper once answered",
    )


class SerpQueryList(_CamelModel):
    queries: List[SerpQuery] = Field(..., description="List of search queries")


class ExtractionResult(_CamelModel):
    learnings: List[str] = Field(..., description="Distinct findings from the search contents")
    follow_up_questions: List[str] = Field(
        ...,
        alias="followUpQuestions",
        description="Questions worth researching next",
    )


class ReportPayload(_CamelModel):
    report_markdown: str = Field(
        ...,
        alias="reportMarkdown",
        min_length=1,
        description="Final report in Markdown",
    )


class FeedbackQuestions(_CamelModel):
    questions: List[str] = Field(..., min_length=1, description="Clarifying questions")


# ---------- Recursive research types ----------

def _ordered_union(*groups: Iterable[str]) -> Tuple[str, ...]:
    """Union of string groups, keeping first-seen order."""
    return tuple(dict.fromkeys(item for group in groups for item in group))


@dataclass(frozen=True)
class ResearchResult:
    """Deduplicated learnings and URLs. Merging always builds a new result."""

    learnings: Tuple[str, ...] = ()
    visited_urls: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "learnings", _ordered_union(self.learnings))
        object.__setattr__(self, "visited_urls", _ordered_union(self.visited_urls))

    def merge(self, *others: "ResearchResult") -> "ResearchResult":
        return ResearchResult(
            learnings=_ordered_union(self.learnings, *(o.learnings for o in others)),
            visited_urls=_ordered_union(self.visited_urls, *(o.visited_urls for o in others)),
        )

    @property
    def is_empty(self) -> bool:
        return not self.learnings and not self.visited_urls

    def to_dict(self) -> dict:
        return {"learnings": list(self.learnings), "visitedUrls": list(self.visited_urls)}


@dataclass(frozen=True)
class ResearchTask:
    """One node of the research tree. Children never point back to their parent."""

    query: str
    breadth: int
    depth: int
    goal: Optional[str] = None
    learnings_so_far: Tuple[str, ...] = field(default=())
    sources_so_far: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        if self.breadth < 1:
            raise ValueError(f"breadth must be >= 1, got {self.breadth}")
        if self.depth < 0:
            raise ValueError(f"depth must be >= 0, got {self.depth}")
        object.__setattr__(self, "learnings_so_far", _ordered_union(self.learnings_so_far))
        object.__setattr__(self, "sources_so_far", _ordered_union(self.sources_so_far))

    @property
    def child_breadth(self) -> int:
        return math.ceil(self.breadth / 2)

    @property
    def child_depth(self) -> int:
        return self.depth - 1

    @property
    def accumulated(self) -> ResearchResult:
        return ResearchResult(self.learnings_so_far, self.sources_so_far)

    def child(self, query: str, accumulated: ResearchResult, goal: Optional[str] = None) -> "ResearchTask":
        return ResearchTask(
            query=query,
            breadth=self.child_breadth,
            depth=self.child_depth,
            goal=goal,
            learnings_so_far=accumulated.learnings,
            sources_so_far=accumulated.visited_urls,
        )


# ---------- LangGraph state ----------

class PipelineState(TypedDict, total=False):
    run_id: str
    query: str
    breadth: int
    depth: int
    learnings: List[str]
    visited_urls: List[str]
    report: str
