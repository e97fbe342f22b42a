"""All prompts used by the research agents."""

from datetime import datetime, timezone

# ──────────────────────────────────────────────────────────────────────
# SYSTEM
# ──────────────────────────────────────────────────────────────────────

RESEARCHER_SYSTEM = """
You are an expert researcher. Today is {today}. Follow these instructions when responding:
- You may be asked to research subjects that are after your knowledge cutoff; assume the user is right when presented with news.
- The user is a highly experienced analyst, no need to simplify it, be as detailed as possible and make sure your response is correct.
- Be highly organized.
- Suggest solutions that the user didn't think about.
- Be proactive and anticipate the user's needs.
- Treat the user as an expert in all subject matter.
- Mistakes erode trust, so be accurate and thorough.
- Provide detailed explanations, the user is comfortable with lots of detail.
- Value good arguments over authorities, the source is irrelevant.
- Consider new technologies and contrarian ideas, not just the conventional wisdom.
- You may use high levels of speculation or prediction, just flag it for the user.
"""


def system_prompt() -> str:
    return RESEARCHER_SYSTEM.format(today=datetime.now(timezone.utc).date().isoformat()).strip()


JSON_ONLY = (
    "IMPORTANT: Return only the raw JSON object in the format below, "
    "without markdown formatting or code fences."
)

# ──────────────────────────────────────────────────────────────────────
# FEEDBACK (clarifying questions)
# ──────────────────────────────────────────────────────────────────────

FEEDBACK_PROMPT = """
Given the following research topic from the user, ask up to {num_questions} follow-up questions to clarify the research direction. {json_only}

<query>{query}</query>

Response format:
{{
  "questions": [
    "First question here",
    "Second question here"
  ]
}}
"""

# ──────────────────────────────────────────────────────────────────────
# SERP QUERY GENERATION
# ──────────────────────────────────────────────────────────────────────

SERP_QUERIES_PROMPT = """
Generate {num_queries} different search queries to research the topic below. Each query must be a specific question or search term related to the topic, and the queries must be unique and not similar to each other. {json_only}

Research topic: "{query}"
{learnings_block}
Response format:
{{
  "queries": [
    {{
      "query": "first query here",
      "researchGoal": "goal of this query and how to advance the research once results are found"
    }}
  ]
}}
"""

LEARNINGS_BLOCK = """
Use these learnings from previous research to generate more specific queries:
{learnings}
"""

# ──────────────────────────────────────────────────────────────────────
# RESULT EXTRACTION
# ──────────────────────────────────────────────────────────────────────

EXTRACTION_PROMPT = """
Given the following contents from a search for the query <query>{query}</query>, generate a list of learnings from the contents. Return exactly {num_learnings} learnings and exactly {num_follow_up} follow-up questions. Make sure each learning is unique and not similar to the others. Learnings should be concise and information dense, and include entities such as people, places, companies, products and things, as well as exact metrics, numbers and dates. {json_only}

<contents>{contents}</contents>

Response format:
{{
  "learnings": ["learning 1"],
  "followUpQuestions": ["question 1"]
}}
"""

# ──────────────────────────────────────────────────────────────────────
# FINAL REPORT
# ──────────────────────────────────────────────────────────────────────

REPORT_PROMPT = """
Given the following prompt from the user, write a final report on the topic using the learnings from research. Make it as detailed as possible, aim for 3 or more pages, and include ALL the learnings from research. {json_only}

<prompt>{prompt}</prompt>

Here are all the learnings from previous research:

{learnings}

Response format:
{{
  "reportMarkdown": "# Title\\n\\n..."
}}
"""

NEXT_QUERY_TEMPLATE = """Previous research goal: {research_goal}
Follow-up research directions:
{follow_up_questions}"""

COMBINED_QUERY_TEMPLATE = """Initial Query: {query}
Follow-up Questions and Answers:
{qa_pairs}"""

FALLBACK_REPORT_TEMPLATE = """# Research Report

## Introduction

This report presents the findings of the research on "{prompt}".

## Key Findings

{learnings}"""
