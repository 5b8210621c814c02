"""
Job Analyzer.

Pulls requirements out of postings and suggests titles worth searching for.
"""

from typing import Any

from applydesk.agents import llm
from applydesk.agents.context import format_context, truncate_text
from applydesk.utils.parser import parse_string_list

REQUIREMENTS_PROMPT = """Extract the concrete requirements from a job posting.

## Output Format (JSON array only)
["5+ years Python", "PostgreSQL", "Team leadership"]

## Rules
- MAX 15 items, each under 8 words
- Skills, tools, certifications, years of experience, degrees
- Skip benefits and company boilerplate
"""

TITLES_PROMPT = """Suggest job titles a candidate should search for.

## Output Format (JSON array only)
["Backend Engineer", "Python Developer"]

## Rules
- MAX 5 titles, most relevant first
- Titles as they appear on job boards, no seniority prefixes
"""


def extract_job_requirements(description: str) -> list[str]:
    """Requirements listed in a posting. Raises LLMError on failure."""
    if not description or not description.strip():
        return []
    text = llm.complete(REQUIREMENTS_PROMPT, truncate_text(description, 4000), temperature=0.2, max_tokens=500)
    return parse_string_list(text, key="requirements")[:15]


def find_relevant_job_titles(profile: dict[str, Any]) -> list[str]:
    """Search titles for a candidate. Raises LLMError on failure."""
    text = llm.complete(TITLES_PROMPT, format_context(profile), temperature=0.3, max_tokens=200)
    return parse_string_list(text, key="titles")[:5]
