"""LLM-backed endpoints: cover letters, match analysis, résumé customization."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from applydesk.agents import cover_letter as cover_letter_agent
from applydesk.agents import job_matcher
from applydesk.agents.context import candidate_context, job_context, truncate_text
from applydesk.agents.job_matcher import MatchAnalysis
from applydesk.agents.llm import LLMError
from applydesk.api.deps import current_user
from applydesk.api.errors import BadRequestError, UpstreamError
from applydesk.api.limiter import limiter
from applydesk.api.routes.jobs import get_user_job
from applydesk.api.schemas import (
    CoverLetterRequest,
    CustomizedResumeResponse,
    CustomizeResumeRequest,
    Envelope,
    InlineJob,
    envelope,
)
from applydesk.db import Job, User, get_db
from applydesk.services import resume_customizer

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_job(db: Session, user_id: str, data: InlineJob) -> tuple[Job | None, dict[str, Any]]:
    """A saved job by id, or a job described inline in the request."""
    if data.job_id:
        job = get_user_job(db, user_id, data.job_id)
        return job, job_context(job)
    if not data.job_title or not data.company:
        raise BadRequestError("Provide job_id, or job_title and company")
    return None, {
        "title": data.job_title,
        "company": data.company,
        "description": truncate_text(data.job_description, 3000),
        "requirements": data.requirements[:15],
    }


@router.post("/generate-cover-letter")
@limiter.limit("10/minute")
def generate_cover_letter(
    request: Request,
    data: CoverLetterRequest,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    job, context = _resolve_job(db, user.id, data)
    try:
        letter = cover_letter_agent.generate_cover_letter(candidate_context(db, user.id), context, data.tone)
    except LLMError as e:
        logger.error(f"[{user.id}] Cover letter failed: {e}")
        raise UpstreamError("Cover letter generation is temporarily unavailable")

    if job is not None:
        job.cover_letter = letter
        db.commit()
    return envelope({"cover_letter": letter, "job_id": job.id if job else None, "tone": data.tone})


@router.post("/analyze-match", response_model=Envelope[MatchAnalysis])
@limiter.limit("10/minute")
def analyze_match(
    request: Request,
    data: InlineJob,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Score the caller against a job. Falls back to keyword matching when the model is down."""
    job, context = _resolve_job(db, user.id, data)
    analysis = job_matcher.score_job(candidate_context(db, user.id), context)
    if job is not None:
        job.match_score = analysis.match_score
        job.match_analysis = analysis.model_dump()
        db.commit()
    return envelope(analysis)


@router.post("/customize-resume", response_model=Envelope[CustomizedResumeResponse])
@limiter.limit("5/minute")
def customize_resume(
    request: Request,
    data: CustomizeResumeRequest,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    job = get_user_job(db, user.id, data.job_id)
    try:
        customized = resume_customizer.customize_for_job(db, user.id, job)
    except LookupError:
        raise BadRequestError("Create a structured resume before customizing it")
    return envelope(CustomizedResumeResponse.model_validate(customized), "Resume customized")
