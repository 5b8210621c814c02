"""Endpoints for trusted callers holding the cron secret: the scheduler and the billing webhook."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applydesk.api.deps import require_cron_secret
from applydesk.api.errors import BadRequestError, NotFoundError
from applydesk.api.schemas import Envelope, PlanChangeRequest, UserResponse, envelope
from applydesk.config import settings
from applydesk.db import User, get_db
from applydesk.jobqueue import enqueue_job
from applydesk.jobqueue.types import JobType
from applydesk.services import plans

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


def _enqueue_scheduled(db: Session, job_type: str, payload: dict | None = None) -> str:
    return enqueue_job(db, job_type, payload, deduplication_key=f"scheduled_{job_type}")


@router.post("/job-scan", status_code=202)
def job_scan(db: Session = Depends(get_db)):
    queue_id = _enqueue_scheduled(db, JobType.AUTOMATED_JOB_SCAN)
    logger.info(f"[{queue_id}] Cron queued automated job scan")
    return envelope({"queue_job_id": queue_id}, "Automated job scan queued")


@router.post("/cleanup", status_code=202)
def cleanup(db: Session = Depends(get_db)):
    queued = {
        JobType.CLEANUP_EXPIRED_REVIEWS: _enqueue_scheduled(db, JobType.CLEANUP_EXPIRED_REVIEWS),
        JobType.CLEANUP_EXPIRED_NOTIFICATIONS: _enqueue_scheduled(db, JobType.CLEANUP_EXPIRED_NOTIFICATIONS),
        JobType.CLEANUP_QUEUE: _enqueue_scheduled(
            db, JobType.CLEANUP_QUEUE, {"older_than_days": settings.queue_retention_days}
        ),
    }
    return envelope({str(k): v for k, v in queued.items()}, "Cleanup jobs queued")


@router.post("/daily-summary", status_code=202)
def daily_summary(db: Session = Depends(get_db)):
    queue_id = _enqueue_scheduled(db, JobType.SEND_DAILY_SUMMARY)
    return envelope({"queue_job_id": queue_id}, "Daily summary queued")


@router.post("/reset-usage")
def reset_usage(db: Session = Depends(get_db)):
    """Start a new monthly usage period for users whose last one has ended."""
    count = plans.reset_due_usage(db)
    return envelope({"reset_count": count}, f"Usage reset for {count} users")


@router.post("/users/{user_id}/plan", response_model=Envelope[UserResponse])
def set_user_plan(user_id: str, data: PlanChangeRequest, db: Session = Depends(get_db)):
    """Record a plan change confirmed by the payment processor."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    try:
        plans.update_user_plan(db, user, data.plan, status=data.status, has_addon=data.has_interview_addon)
    except ValueError as e:
        raise BadRequestError(str(e))
    return envelope(UserResponse.model_validate(user), f"Plan changed to {data.plan}")
