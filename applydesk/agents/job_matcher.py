"""
Job Matcher.

Scores how well a job fits a candidate. The model does the judging; a
keyword overlap score stands in when the model is unavailable.
"""

import logging
import re
from typing import Any

from pydantic import BaseModel, Field

from applydesk.agents import llm
from applydesk.agents.context import format_context
from applydesk.utils.parser import parse_match_response, recommendation_for

logger = logging.getLogger(__name__)

JOB_MATCH_PROMPT = """You are an expert recruiter scoring candidate/job fit.

## Output Format (JSON only, no explanation)
```json
{
    "matchScore": 0.82,
    "reasons": ["5 years of Python matches the core stack"],
    "concerns": ["No Kubernetes experience"],
    "recommendation": "recommended"
}
```

## Rules
- matchScore is between 0 and 1
- recommendation: highly_recommended | recommended | maybe | not_recommended
- MAX 4 reasons and 4 concerns, one short sentence each
- Judge skills, seniority, domain and location fit
- Return ONLY the JSON
"""


class MatchAnalysis(BaseModel):
    match_score: float = Field(ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str = "maybe"
    source: str = Field(default="llm", description="llm or keywords")


def analyze_job_match(profile: dict[str, Any], job: dict[str, Any]) -> MatchAnalysis:
    """Ask the model for a match analysis. Raises LLMError on failure."""
    prompt = f"## Candidate\n{format_context(profile)}\n\n## Job\n{format_context(job)}"
    text = llm.complete(JOB_MATCH_PROMPT, prompt, temperature=0.3, max_tokens=800)
    try:
        return MatchAnalysis(**parse_match_response(text))
    except ValueError as e:
        raise llm.LLMError(f"Unparseable match analysis: {e}") from e


def keyword_match(profile: dict[str, Any], job: dict[str, Any]) -> MatchAnalysis:
    """Score by the share of candidate skills and titles mentioned in the posting."""
    text = " ".join(
        str(job.get(k) or "") for k in ("title", "description")
    ).lower() + " " + " ".join(job.get("requirements") or []).lower()

    skills = [s for s in profile.get("skills", []) if s]
    matched = [s for s in skills if _mentions(text, s)]
    title_hit = any(_mentions(str(job.get("title", "")).lower(), t) for t in profile.get("titles", []))

    skill_ratio = len(matched) / min(len(skills), 10) if skills else 0.0
    score = min(1.0, 0.7 * min(skill_ratio, 1.0) + (0.3 if title_hit else 0.0))

    return MatchAnalysis(
        match_score=round(score, 3),
        reasons=[f"Mentions {', '.join(matched[:5])}"] if matched else [],
        concerns=[] if matched else ["Few profile skills appear in the posting"],
        recommendation=recommendation_for(score),
        source="keywords",
    )


def score_job(profile: dict[str, Any], job: dict[str, Any]) -> MatchAnalysis:
    """Model analysis with keyword fallback."""
    try:
        return analyze_job_match(profile, job)
    except llm.LLMError as e:
        logger.warning(f"Falling back to keyword match for '{job.get('title')}': {e}")
        return keyword_match(profile, job)


def _mentions(text: str, term: str) -> bool:
    return re.search(rf"(?<![\w+#]){re.escape(term.lower())}(?![\w+#])", text) is not None
