"""Application tracking endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import ConflictError, NotFoundError
from applydesk.api.routes.jobs import get_user_job
from applydesk.api.schemas import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationUpdate,
    Envelope,
    MessageResponse,
    Pagination,
    envelope,
)
from applydesk.db import Application, ApplicationStatus, InterviewSession, User, get_db
from applydesk.services import applications

router = APIRouter()


def _get_application(db: Session, user_id: str, application_id: str) -> Application:
    application = (
        db.query(Application)
        .filter(Application.id == application_id, Application.user_id == user_id)
        .first()
    )
    if application is None:
        raise NotFoundError("Application not found")
    return application


@router.get("", response_model=Envelope[ApplicationListResponse])
def list_applications(
    status: ApplicationStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    items, total = applications.list_applications(db, user.id, status=status, limit=limit, offset=offset)
    return envelope(
        ApplicationListResponse(
            applications=[ApplicationResponse.model_validate(a) for a in items],
            stats=applications.application_stats(db, user.id),
            pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(items) < total),
        )
    )


@router.post("", response_model=Envelope[ApplicationResponse], status_code=201)
def create_application(data: ApplicationCreate, user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Record an application made outside the auto-apply flow."""
    job = get_user_job(db, user.id, data.job_id) if data.job_id else None
    try:
        application = applications.create_application(
            db,
            user.id,
            job_title=data.job_title,
            company=data.company,
            job_url=data.job_url,
            job_id=data.job_id,
            status=data.status,
            cover_letter=data.cover_letter,
            notes=data.notes,
            commit=False,
        )
    except applications.DuplicateApplicationError:
        raise ConflictError("You have already applied to this job")
    if job is not None:
        job.applied_to = True
    db.commit()
    return envelope(ApplicationResponse.model_validate(application), "Application recorded")


@router.get("/{application_id}", response_model=Envelope[ApplicationResponse])
def get_application(application_id: str, user: User = Depends(current_user), db: Session = Depends(get_db)):
    return envelope(ApplicationResponse.model_validate(_get_application(db, user.id, application_id)))


@router.patch("/{application_id}", response_model=Envelope[ApplicationResponse])
def update_application(
    application_id: str,
    data: ApplicationUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    application = _get_application(db, user.id, application_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(application, field, value)
    db.commit()
    db.refresh(application)
    return envelope(ApplicationResponse.model_validate(application), "Application updated")


@router.delete("/{application_id}", response_model=Envelope[MessageResponse])
def delete_application(application_id: str, user: User = Depends(current_user), db: Session = Depends(get_db)):
    application = _get_application(db, user.id, application_id)
    if db.query(InterviewSession.id).filter(InterviewSession.application_id == application.id).first():
        raise ConflictError("Application has interview sessions")
    db.delete(application)
    db.commit()
    return envelope(MessageResponse(message="Application deleted"))
