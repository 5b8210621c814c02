"""
Interviewer.

Generates mock interview questions. The question category follows the
interview's progress; a fixed question bank covers model outages.
"""

from typing import Any

from applydesk.agents import llm
from applydesk.agents.context import format_context

INTERVIEWER_PROMPT = """You are a hiring manager running a mock interview.

## Rules
- Ask exactly ONE question, under 40 words
- Match the requested category
- Make it specific to the job and the candidate's background
- Do not repeat earlier questions
- Return only the question text
"""

QUESTION_BANK: dict[str, list[str]] = {
    "opening": [
        "Tell me about yourself and your professional background.",
        "Why are you interested in this position at our company?",
        "What attracted you to apply for this role?",
    ],
    "experience": [
        "Describe a challenging project you've worked on and how you overcame obstacles.",
        "Tell me about a time when you had to learn a new technology quickly.",
        "Give me an example of when you collaborated with a difficult team member.",
    ],
    "behavioral": [
        "How do you handle tight deadlines and pressure?",
        "Describe a time when you failed at something. What did you learn?",
        "Tell me about a time you went above and beyond for a project.",
    ],
    "closing": [
        "Where do you see yourself in 5 years?",
        "What questions do you have for me about the role or company?",
        "What would success look like for you in this position?",
    ],
}

TECHNICAL_BY_ROLE = [
    (("engineer", "developer"), "Walk me through your approach to solving a complex technical problem."),
    (("manager",), "Describe your management style and how you handle team conflicts."),
    (("designer",), "Tell me about your design process from concept to final product."),
]
TECHNICAL_DEFAULT = "What technical skills make you well-suited for this position?"


def question_category(index: int, total: int) -> str:
    if index == 0:
        return "opening"
    if index >= total - 1:
        return "closing"
    if index == 1:
        return "technical"
    if index == 2:
        return "experience"
    return "behavioral"


def builtin_question(job_title: str, index: int, total: int) -> str:
    category = question_category(index, total)
    if category == "technical":
        role = (job_title or "").lower()
        for keywords, question in TECHNICAL_BY_ROLE:
            if any(k in role for k in keywords):
                return question
        return TECHNICAL_DEFAULT
    bank = QUESTION_BANK[category]
    return bank[index % len(bank)]


def generate_interview_question(
    job: dict[str, Any],
    candidate: dict[str, Any],
    index: int,
    total: int,
    previous: list[str] | None = None,
) -> str:
    """Model-written question. Raises LLMError on failure."""
    asked = "\n".join(f"- {q}" for q in previous or []) or "- none"
    prompt = (
        f"Category: {question_category(index, total)} (question {index + 1} of {total})\n\n"
        f"## Job\n{format_context(job)}\n\n"
        f"## Candidate\n{format_context(candidate)}\n\n"
        f"## Already asked\n{asked}"
    )
    text = llm.complete(INTERVIEWER_PROMPT, prompt, temperature=0.7, max_tokens=150)
    return text.strip().strip('"')
