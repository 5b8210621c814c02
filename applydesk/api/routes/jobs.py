"""Job search, saved jobs and queue endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import BadRequestError, NotFoundError, UpstreamError
from applydesk.api.limiter import limiter
from applydesk.api.schemas import (
    Envelope,
    JobResponse,
    QueueCleanupRequest,
    QueueJobRequest,
    QueueRowResponse,
    envelope,
)
from applydesk.db import (
    Application,
    ApplicationReview,
    Job,
    JobNotification,
    JobQueue,
    NotificationStatus,
    ReviewStatus,
    User,
    get_db,
)
from applydesk.jobqueue import scheduler
from applydesk.jobqueue.database_queue import cleanup_old_jobs, get_health
from applydesk.jobqueue.types import JobType
from applydesk.services.applications import count_applications_today
from applydesk.tools.job_search import get_job_search_service
from applydesk.tools.jsearch import JobSearchError, JobSearchPage, JobSearchParams

logger = logging.getLogger(__name__)

router = APIRouter()

JOB_SCOPED_TYPES = {
    JobType.GENERATE_COVER_LETTER: scheduler.schedule_cover_letter_generation,
    JobType.CUSTOMIZE_RESUME: scheduler.schedule_resume_customization,
    JobType.PROCESS_APPLICATION: scheduler.schedule_application_processing,
}


def get_user_job(db: Session, user_id: str, job_id: str) -> Job:
    job = db.query(Job).filter(Job.id == job_id, Job.user_id == user_id).first()
    if job is None:
        raise NotFoundError("Job not found")
    return job


@router.post("/search", response_model=Envelope[JobSearchPage])
@limiter.limit("10/minute")
def search_jobs(
    request: Request,
    params: JobSearchParams,
    user: User = Depends(current_user),
):
    """Search the job sources directly. Results are not saved."""
    try:
        page = get_job_search_service().search_jobs(params)
    except JobSearchError as e:
        logger.error(f"[{user.id}] Job search failed: {e}")
        raise UpstreamError("Job search is temporarily unavailable")
    return envelope(page)


@router.get("", response_model=Envelope[list[JobResponse]])
def list_jobs(
    min_score: float | None = Query(None, ge=0, le=1),
    applied: bool | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Jobs found for the user by scans, best matches first."""
    query = db.query(Job).filter(Job.user_id == user.id)
    if min_score is not None:
        query = query.filter(Job.match_score >= min_score)
    if applied is not None:
        query = query.filter(Job.applied_to.is_(applied))
    jobs = (
        query.order_by(Job.match_score.desc().nulls_last(), Job.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return envelope([JobResponse.model_validate(job) for job in jobs])


@router.get("/queue/status")
def queue_status(user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Queue health, schedules and the user's recent queue activity."""
    recent = (
        db.query(JobQueue)
        .filter(JobQueue.user_id == user.id)
        .order_by(JobQueue.created_at.desc())
        .limit(10)
        .all()
    )
    pending_notifications = (
        db.query(func.count(JobNotification.id))
        .filter(JobNotification.user_id == user.id, JobNotification.status == NotificationStatus.PENDING)
        .scalar()
    )
    pending_reviews = (
        db.query(func.count(ApplicationReview.id))
        .filter(ApplicationReview.user_id == user.id, ApplicationReview.status == ReviewStatus.PENDING)
        .scalar()
    )
    total_applications = db.query(func.count(Application.id)).filter(Application.user_id == user.id).scalar()

    return envelope(
        {
            "queue": get_health(db),
            "schedules": scheduler.describe_schedules(),
            "recent_jobs": [QueueRowResponse.model_validate(row).model_dump() for row in recent],
            "user_stats": {
                "applications_today": count_applications_today(db, user.id),
                "total_applications": total_applications,
                "pending_notifications": pending_notifications,
                "pending_reviews": pending_reviews,
            },
        }
    )


@router.post("/queue", status_code=202)
def enqueue(data: QueueJobRequest, user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Queue background work for the caller."""
    if data.type in JOB_SCOPED_TYPES:
        if not data.job_id:
            raise BadRequestError(f"job_id is required for {data.type}")
        get_user_job(db, user.id, data.job_id)
        queue_id = JOB_SCOPED_TYPES[data.type](db, user.id, data.job_id)
    elif data.type == JobType.USER_JOB_SCAN:
        queue_id = scheduler.schedule_user_job_scan(db, user.id)
    else:
        queue_id = scheduler.schedule_job_matching(db, user.id)
    return envelope({"queue_job_id": queue_id, "type": data.type}, "Job queued")


@router.post("/queue/cleanup")
def cleanup_queue(data: QueueCleanupRequest, user: User = Depends(current_user), db: Session = Depends(get_db)):
    deleted = cleanup_old_jobs(db, data.days)
    return envelope({"deleted": deleted, "older_than_days": data.days})


@router.get("/{job_id}", response_model=Envelope[JobResponse])
def get_job(job_id: str, user: User = Depends(current_user), db: Session = Depends(get_db)):
    return envelope(JobResponse.model_validate(get_user_job(db, user.id, job_id)))
