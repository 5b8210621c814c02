"""
CV Parser.

Extracts a compact profile from imported résumé text.
"""

from applydesk.agents import llm
from applydesk.agents.context import truncate_text
from applydesk.utils.parser import parse_profile_response

CV_PARSER_PROMPT = """You are a CV parser. Extract a COMPACT structured profile.

## Output Format (JSON only, no explanation)
```json
{
    "skills": ["Python", "PostgreSQL", "FastAPI"],
    "experience_years": 4,
    "titles": ["Backend Engineer", "Software Developer"],
    "summary": "Backend engineer building Python APIs for fintech"
}
```

## Rules
- List TOP 15 skills only (most relevant for job search)
- Summary: MAX 40 words
- Titles: MAX 3 recent roles
- Return ONLY the JSON, no other text
"""


def parse_resume_text(text: str) -> dict:
    """Profile fields from résumé text. Raises LLMError on failure."""
    response = llm.complete(CV_PARSER_PROMPT, truncate_text(text, 4000), temperature=0.1, max_tokens=600)
    return parse_profile_response(response)
