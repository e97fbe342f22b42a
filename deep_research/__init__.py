"""Recursive deep research: expand a question into a tree of web searches,
collect learnings, and write a report."""

from .agents import build_combined_query, generate_feedback, write_final_report
from .config import AppConfig, ConfigurationError, get_config
from .graph import run_deep_research
from .models import ResearchResult, ResearchTask
from .rate_gate import RateGate, ResearchContext
from .research import deep_research, research

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "RateGate",
    "ResearchContext",
    "ResearchResult",
    "ResearchTask",
    "build_combined_query",
    "deep_research",
    "generate_feedback",
    "get_config",
    "research",
    "run_deep_research",
    "write_final_report",
]
