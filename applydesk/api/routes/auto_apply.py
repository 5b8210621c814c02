"""Auto-apply settings and scan triggers."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import BadRequestError, ConflictError, QuotaExceededError
from applydesk.api.limiter import limiter
from applydesk.api.schemas import AutoApplySettingsResponse, AutoApplySettingsUpdate, Envelope, envelope
from applydesk.db import JobQueue, QueueStatus, User, get_db
from applydesk.jobqueue.scheduler import schedule_user_job_scan
from applydesk.jobqueue.types import JobType
from applydesk.services import plans
from applydesk.services.job_scanner import is_scanning
from applydesk.services.notifications import get_or_create_settings

router = APIRouter()


def _latest_scan(db: Session, user_id: str) -> JobQueue | None:
    return (
        db.query(JobQueue)
        .filter(JobQueue.user_id == user_id, JobQueue.type == JobType.USER_JOB_SCAN)
        .order_by(JobQueue.created_at.desc())
        .first()
    )


@router.get("/settings", response_model=Envelope[AutoApplySettingsResponse])
def get_settings(user: User = Depends(current_user), db: Session = Depends(get_db)):
    settings = get_or_create_settings(db, user.id)
    db.commit()
    return envelope(AutoApplySettingsResponse.model_validate(settings))


@router.put("/settings", response_model=Envelope[AutoApplySettingsResponse])
def update_settings(
    data: AutoApplySettingsUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    settings = get_or_create_settings(db, user.id)
    changes = data.model_dump(exclude_unset=True)
    notify_min = changes.get("notify_min_score", settings.notify_min_score)
    apply_min = changes.get("min_match_score", settings.min_match_score)
    if notify_min > apply_min:
        raise BadRequestError("notify_min_score cannot be higher than min_match_score")

    for field, value in changes.items():
        setattr(settings, field, value)
    db.commit()
    db.refresh(settings)
    return envelope(AutoApplySettingsResponse.model_validate(settings), "Settings updated")


@router.post("/scan", status_code=202)
@limiter.limit("5/minute")
def trigger_scan(request: Request, user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Queue a scan for the caller."""
    if not plans.has_active_subscription(user):
        raise QuotaExceededError("An active subscription is required to scan for jobs", code="SUBSCRIPTION_REQUIRED")

    latest = _latest_scan(db, user.id)
    if is_scanning(user.id) or (latest is not None and latest.status in (QueueStatus.PENDING, QueueStatus.PROCESSING)):
        raise ConflictError("Job scanning already in progress")

    queue_id = schedule_user_job_scan(db, user.id)
    return envelope({"queue_job_id": queue_id, "status": QueueStatus.PENDING}, "Job scan queued")


@router.get("/scan")
def scan_status(user: User = Depends(current_user), db: Session = Depends(get_db)):
    settings = get_or_create_settings(db, user.id)
    db.commit()
    latest = _latest_scan(db, user.id)
    return envelope(
        {
            "is_scanning": is_scanning(user.id)
            or (latest is not None and latest.status in (QueueStatus.PENDING, QueueStatus.PROCESSING)),
            "last_scan_at": settings.last_scan_at,
            "latest_job": None
            if latest is None
            else {
                "id": latest.id,
                "status": latest.status,
                "created_at": latest.created_at,
                "processed_at": latest.processed_at,
            },
        }
    )
