"""
Cover Letter Writer.

Produces a short, job-specific cover letter from the candidate context.
"""

from typing import Any

from applydesk.agents import llm
from applydesk.agents.context import format_context

TONES = ("professional", "enthusiastic", "conversational", "formal")

COVER_LETTER_PROMPT = """You write concise, specific cover letters.

## Rules
- 2-3 paragraphs, under 300 words
- Open with the role and company by name
- Tie 2-3 concrete candidate achievements to the job's needs
- No placeholders like [Your Name]; sign with the candidate's name if known
- No invented experience
- Plain text only, no markdown
"""


def generate_cover_letter(profile: dict[str, Any], job: dict[str, Any], tone: str = "professional") -> str:
    """Return the cover letter text. Raises LLMError on failure."""
    if tone not in TONES:
        tone = "professional"
    prompt = (
        f"Tone: {tone}\n\n"
        f"## Candidate\n{format_context(profile)}\n\n"
        f"## Job\n{format_context(job)}\n\n"
        "Write the cover letter."
    )
    return llm.complete(COVER_LETTER_PROMPT, prompt, temperature=0.4, max_tokens=700).strip()
