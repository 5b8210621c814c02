"""Structured and customized résumé endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import NotFoundError
from applydesk.api.schemas import (
    CustomizedResumeResponse,
    Envelope,
    StructuredResumeResponse,
    StructuredResumeUpdate,
    envelope,
)
from applydesk.db import CustomizedResume, StructuredResume, User, get_db

router = APIRouter()

SECTION_COUNT = 5
COMPLETE_AT = 4


def completed_sections(data: dict[str, Any]) -> int:
    """Count filled sections: contact (name and email), summary, experience, education, skills."""
    contact = data.get("contact_info") or {}
    return sum(
        [
            bool(contact.get("fullName") and contact.get("email")),
            bool((data.get("summary") or "").strip()),
            bool(data.get("experience")),
            bool(data.get("education")),
            bool(data.get("skills")),
        ]
    )


@router.get("/structured", response_model=Envelope[StructuredResumeResponse])
def get_structured_resume(user: User = Depends(current_user), db: Session = Depends(get_db)):
    resume = db.query(StructuredResume).filter(StructuredResume.user_id == user.id).first()
    if resume is None:
        raise NotFoundError("No structured resume found")
    return envelope(StructuredResumeResponse.model_validate(resume))


@router.post("/structured", response_model=Envelope[StructuredResumeResponse])
def save_structured_resume(
    data: StructuredResumeUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Create or replace the user's structured résumé."""
    values = {
        "contact_info": data.contact_info.model_dump(by_alias=True),
        "summary": data.summary,
        "experience": data.experience,
        "education": data.education,
        "skills": data.skills,
        "certifications": data.certifications,
        "projects": data.projects,
    }
    filled = completed_sections(values)

    resume = db.query(StructuredResume).filter(StructuredResume.user_id == user.id).first()
    if resume is None:
        resume = StructuredResume(user_id=user.id)
        db.add(resume)
    for field, value in values.items():
        setattr(resume, field, value)
    resume.is_complete = filled >= COMPLETE_AT
    resume.completion_percentage = round(filled / SECTION_COUNT * 100)
    db.commit()
    db.refresh(resume)
    return envelope(StructuredResumeResponse.model_validate(resume), "Resume saved")


@router.get("/customized", response_model=Envelope[list[CustomizedResumeResponse]])
def list_customized_resumes(
    job_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    query = db.query(CustomizedResume).filter(CustomizedResume.user_id == user.id)
    if job_id:
        query = query.filter(CustomizedResume.job_id == job_id)
    items = query.order_by(CustomizedResume.created_at.desc()).limit(limit).all()
    return envelope([CustomizedResumeResponse.model_validate(item) for item in items])
