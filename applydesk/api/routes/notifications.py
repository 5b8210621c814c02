"""Match notifications."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import BadRequestError, NotFoundError
from applydesk.api.schemas import (
    Envelope,
    NotificationAction,
    NotificationListResponse,
    NotificationResponse,
    Pagination,
    envelope,
)
from applydesk.db import Job, JobNotification, NotificationStatus, User, get_db
from applydesk.jobqueue.scheduler import schedule_job_matching
from applydesk.services import notifications

router = APIRouter()


def _to_response(db: Session, notification: JobNotification) -> NotificationResponse:
    response = NotificationResponse.model_validate(notification)
    job = db.get(Job, notification.job_id)
    if job is not None:
        response.job_title = job.title
        response.company = job.company
    return response


@router.get("", response_model=Envelope[NotificationListResponse])
def list_notifications(
    status: NotificationStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    items, total = notifications.get_notifications(db, user.id, status=status, limit=limit, offset=offset)
    return envelope(
        NotificationListResponse(
            notifications=[_to_response(db, n) for n in items],
            pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(items) < total),
        )
    )


@router.patch("/{notification_id}", response_model=Envelope[NotificationResponse])
def update_notification(
    notification_id: str,
    data: NotificationAction,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    if data.action != "mark_viewed":
        raise BadRequestError(f"Unsupported action: {data.action}")
    notification = notifications.mark_viewed(db, user.id, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return envelope(_to_response(db, notification))


@router.post("/process", status_code=202)
def process_matches(user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Queue match processing for the caller's recent jobs."""
    queue_id = schedule_job_matching(db, user.id)
    return envelope({"queue_job_id": queue_id}, "Match processing queued")
