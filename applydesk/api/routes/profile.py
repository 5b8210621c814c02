"""Profile endpoints."""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from applydesk.agents.context import truncate_text
from applydesk.agents.cv_parser import parse_resume_text
from applydesk.agents.llm import LLMError
from applydesk.api.deps import current_user
from applydesk.api.errors import BadRequestError, NotFoundError, UpstreamError
from applydesk.api.schemas import Envelope, ProfileResponse, ProfileUpdate, envelope
from applydesk.db import Profile, User, get_db
from applydesk.tools.pdf_parser import PdfParseError, parse_pdf

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _get_or_create_profile(db: Session, user: User) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if profile is None:
        profile = Profile(user_id=user.id, full_name=user.name)
        db.add(profile)
        db.flush()
    return profile


@router.get("", response_model=Envelope[ProfileResponse])
def get_profile(user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Get user profile."""
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if not profile:
        raise NotFoundError("Profile not found")
    return envelope(ProfileResponse.model_validate(profile))


@router.put("", response_model=Envelope[ProfileResponse])
def update_profile(data: ProfileUpdate, user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Update the fields that were sent; the rest stay as they are."""
    if data.salary_min is not None and data.salary_max is not None and data.salary_min > data.salary_max:
        raise BadRequestError("salary_min cannot exceed salary_max")

    profile = _get_or_create_profile(db, user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return envelope(ProfileResponse.model_validate(profile), "Profile updated")


@router.post("/import-resume", response_model=Envelope[ProfileResponse])
async def import_resume(
    file: UploadFile = File(...),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Upload a résumé PDF and fill the profile from it."""
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise BadRequestError("Only PDF files are supported")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise BadRequestError("File is larger than 5 MB")
    try:
        text = parse_pdf(content)
    except PdfParseError as e:
        raise BadRequestError(str(e))
    if not text.strip():
        raise BadRequestError("PDF appears to be empty or unreadable")

    try:
        extracted = parse_resume_text(text)
    except LLMError as e:
        logger.error(f"[{user.id}] Resume import failed: {e}")
        raise UpstreamError("Could not analyze the resume right now, try again later")

    profile = _get_or_create_profile(db, user)
    existing = {s.get("name", "").lower() for s in profile.skills or [] if isinstance(s, dict)}
    new_skills = [
        {"name": name, "proficiency": None, "years": None}
        for name in extracted["skills"]
        if name.lower() not in existing
    ]
    profile.skills = [*(profile.skills or []), *new_skills]
    if extracted["experience_years"] is not None:
        profile.experience_years = extracted["experience_years"]
    if extracted["titles"]:
        profile.job_titles = list(dict.fromkeys([*(profile.job_titles or []), *extracted["titles"]]))
    if extracted["summary"] and not profile.summary:
        profile.summary = extracted["summary"]
    profile.resume_text = truncate_text(text, 20000)
    db.commit()
    db.refresh(profile)

    logger.info(f"[{user.id}] Imported resume: {len(new_skills)} new skills")
    return envelope(ProfileResponse.model_validate(profile), "Resume imported")
