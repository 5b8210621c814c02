"""Pending application reviews."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user, quota_error
from applydesk.api.errors import ConflictError, NotFoundError
from applydesk.api.schemas import Envelope, JobResponse, ReviewDecision, ReviewResponse, envelope
from applydesk.db import ApplicationReview, Job, User, get_db
from applydesk.services import notifications
from applydesk.services.applications import DuplicateApplicationError
from applydesk.services.notifications import ReviewStateError
from applydesk.services.plans import QuotaError

router = APIRouter()


def _to_response(db: Session, review: ApplicationReview) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    job = db.get(Job, review.job_id)
    if job is not None:
        response.job = JobResponse.model_validate(job)
    return response


@router.get("", response_model=Envelope[list[ReviewResponse]])
def pending_reviews(user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Reviews awaiting a decision, newest first."""
    return envelope([_to_response(db, r) for r in notifications.get_pending_reviews(db, user.id)])


@router.post("/{review_id}/approve", response_model=Envelope[ReviewResponse])
def approve(
    review_id: str,
    data: ReviewDecision | None = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    data = data or ReviewDecision()
    try:
        review = notifications.approve_review(db, user, review_id, notes=data.notes, cover_letter=data.cover_letter)
    except ReviewStateError as e:
        db.rollback()
        raise ConflictError(str(e))
    except QuotaError as e:
        db.rollback()
        raise quota_error(e)
    except DuplicateApplicationError:
        db.rollback()
        raise ConflictError("You have already applied to this job")
    if review is None:
        raise NotFoundError("Review not found")
    return envelope(_to_response(db, review), "Application submitted")


@router.post("/{review_id}/reject", response_model=Envelope[ReviewResponse])
def reject(
    review_id: str,
    data: ReviewDecision | None = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    data = data or ReviewDecision()
    try:
        review = notifications.reject_review(db, user.id, review_id, notes=data.notes)
    except ReviewStateError as e:
        raise ConflictError(str(e))
    if review is None:
        raise NotFoundError("Review not found")
    return envelope(_to_response(db, review), "Application rejected")
