"""
LLM agents for ApplyDesk.

- job_matcher: Scores candidate/job fit
- cover_letter: Writes job-specific cover letters
- job_analyzer: Extracts requirements, suggests search titles
- cv_parser: Extracts a profile from résumé text
- interviewer: Mock interview questions
"""

from applydesk.agents.llm import LLMError

__all__ = ["LLMError"]
