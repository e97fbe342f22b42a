"""Interactive command-line research run.

Asks for a topic, breadth and depth, asks the model's clarifying
questions, runs the recursive research and writes the report to
``output.md``.
"""

import asyncio
import logging
from pathlib import Path
from typing import List

from deep_research.agents import build_combined_query, generate_feedback, write_final_report
from deep_research.config import ConfigurationError, get_config
from deep_research.logs import configure_logging
from deep_research.rate_gate import ResearchContext
from deep_research.research import research

logger = logging.getLogger("deep_research.cli")

OUTPUT_PATH = Path("output.md")


def ask_int(prompt: str, default: int, low: int, high: int) -> int:
    raw = input(prompt).strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return min(max(value, low), high)


async def run() -> int:
    cfg = get_config()
    configure_logging(cfg.log_level)
    try:
        cfg.require_llm()
        cfg.require_search()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 2

    ctx = ResearchContext.from_config(cfg)

    initial_query = input("What would you like to research? ").strip()
    if not initial_query:
        print("A research question is required.")
        return 1
    breadth = ask_int("Enter research breadth (recommended 2-5, default 4): ", 4, 1, 5)
    depth = ask_int("Enter research depth (recommended 1-5, default 2): ", 2, 1, 10)

    print("Creating research plan...")
    try:
        questions = await generate_feedback(ctx, initial_query)
    except Exception as exc:
        logger.warning("Could not generate follow-up questions: %s", exc)
        questions = []

    answers: List[str] = []
    if questions:
        print("\nTo better understand your research needs, please answer these follow-up questions:")
        for question in questions:
            answers.append(input(f"\n{question}\nYour answer: "))

    combined_query = build_combined_query(initial_query, questions, answers)

    print("\nResearching your topic...")
    result = await research(combined_query, breadth, depth, ctx=ctx)

    print("\n\nLearnings:\n\n" + "\n".join(result.learnings))
    print(f"\n\nVisited URLs ({len(result.visited_urls)}):\n\n" + "\n".join(result.visited_urls))
    print("Writing final report...")

    report = await write_final_report(ctx, combined_query, result.learnings, result.visited_urls)
    OUTPUT_PATH.write_text(report, encoding="utf-8")

    print(f"\n\nFinal Report:\n\n{report}")
    print(f"\nReport has been saved to {OUTPUT_PATH}")
    return 0


def main() -> int:
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
