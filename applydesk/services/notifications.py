"""
Match notifications and application reviews.

A scored job becomes a notification. When the user wants to approve
applications, it also gets a review that expires after
``review_timeout_hours``. Approving a review files the application.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from applydesk.agents import cover_letter as cover_letter_agent
from applydesk.agents import job_matcher
from applydesk.agents.context import candidate_context, job_context
from applydesk.agents.llm import LLMError
from applydesk.db import (
    ApplicationReview,
    AutoApplySettings,
    Job,
    JobNotification,
    NotificationStatus,
    ReviewStatus,
    User,
    utcnow,
)
from applydesk.services import plans
from applydesk.services.applications import apply_to_job, count_applications_today

logger = logging.getLogger(__name__)

MATCH_WINDOW_HOURS = 24
MATCH_BATCH_SIZE = 50
EXPIRED_GRACE_DAYS = 30
EXPIRED_RETENTION_DAYS = 90


class ReviewStateError(Exception):
    """The review is no longer pending."""


@dataclass
class MatchDecision:
    action: str  # auto_apply / notify / skip
    reason: str = ""


def get_or_create_settings(db: Session, user_id: str) -> AutoApplySettings:
    settings = db.query(AutoApplySettings).filter(AutoApplySettings.user_id == user_id).first()
    if settings is None:
        settings = AutoApplySettings(user_id=user_id)
        db.add(settings)
        db.flush()
    return settings


def notification_message(job: Job, score: float) -> str:
    return f"Found a {round(score * 100)}% match: {job.title} at {job.company}"


def decide(score: float, settings: AutoApplySettings, applications_left_today: int) -> MatchDecision:
    """What to do with a scored job."""
    if score < settings.notify_min_score:
        return MatchDecision("skip", "below notification threshold")
    if (
        score >= settings.min_match_score
        and settings.auto_apply_enabled
        and not settings.require_approval
        and applications_left_today > 0
    ):
        return MatchDecision("auto_apply")
    if settings.notify_on_match:
        return MatchDecision("notify")
    return MatchDecision("skip", "notifications disabled")


def try_cover_letter(candidate: dict[str, Any], job: Job) -> str | None:
    try:
        return cover_letter_agent.generate_cover_letter(candidate, job_context(job))
    except LLMError as e:
        logger.warning(f"[{job.id}] Cover letter skipped: {e}")
        return None


def create_match_notification(
    db: Session,
    user_id: str,
    job: Job,
    score: float,
    settings: AutoApplySettings,
    cover_letter: str | None = None,
) -> JobNotification:
    """Notification for a match, plus a review when approval is required."""
    expires_at = utcnow() + timedelta(hours=settings.review_timeout_hours)
    notification = JobNotification(
        user_id=user_id,
        job_id=job.id,
        match_score=score,
        message=notification_message(job, score),
        expires_at=expires_at,
    )
    db.add(notification)
    db.flush()

    if settings.require_approval:
        db.add(
            ApplicationReview(
                user_id=user_id,
                job_id=job.id,
                notification_id=notification.id,
                match_score=score,
                cover_letter=cover_letter,
                expires_at=expires_at,
            )
        )
    logger.info(f"[{job.id}] Notified {user_id}: {notification.message}")
    return notification


def auto_apply(db: Session, user: User, job: Job, score: float, cover_letter: str | None) -> None:
    """File an application without review and record it as a notification."""
    plans.require_auto_application_quota(user)
    apply_to_job(
        db,
        user.id,
        job,
        cover_letter=cover_letter,
        notes=f"Auto-applied ({round(score * 100)}% match)",
        commit=False,
    )
    plans.consume_auto_application(db, user, commit=False)
    db.add(
        JobNotification(
            user_id=user.id,
            job_id=job.id,
            match_score=score,
            status=NotificationStatus.APPLIED,
            message=f"Applied to {job.title} at {job.company} ({round(score * 100)}% match)",
            expires_at=utcnow() + timedelta(days=EXPIRED_GRACE_DAYS),
        )
    )


def handle_scored_job(
    db: Session,
    user: User,
    job: Job,
    settings: AutoApplySettings,
    candidate: dict[str, Any],
    applications_left_today: int,
) -> str:
    """Act on a job that already has a match score. Returns the action taken."""
    score = job.match_score or 0.0
    decision = decide(score, settings, applications_left_today)

    if decision.action == "auto_apply":
        letter = job.cover_letter or try_cover_letter(candidate, job)
        job.cover_letter = letter
        try:
            auto_apply(db, user, job, score, letter)
            return "auto_apply"
        except plans.QuotaError as e:
            logger.info(f"[{job.id}] Auto-apply blocked ({e}), notifying instead")
            decision = MatchDecision("notify" if settings.notify_on_match else "skip")

    if decision.action == "notify":
        letter = job.cover_letter
        if letter is None and score >= settings.min_match_score:
            letter = try_cover_letter(candidate, job)
            job.cover_letter = letter
        create_match_notification(db, user.id, job, score, settings, letter)
        return "notify"

    return "skip"


def process_job_matches(db: Session, user_id: str | None = None) -> dict[str, int]:
    """Score and route recently found jobs that have not been processed yet."""
    totals = {"processed": 0, "notified": 0, "auto_applied": 0}
    query = db.query(AutoApplySettings)
    if user_id:
        query = query.filter(AutoApplySettings.user_id == user_id)

    for settings in query.all():
        user = db.get(User, settings.user_id)
        if user is None:
            continue
        result = _process_user_matches(db, user, settings)
        for key, value in result.items():
            totals[key] += value
    return totals


def _process_user_matches(db: Session, user: User, settings: AutoApplySettings) -> dict[str, int]:
    since = utcnow() - timedelta(hours=MATCH_WINDOW_HOURS)
    jobs = (
        db.query(Job)
        .filter(
            Job.user_id == user.id,
            Job.processed.is_(False),
            Job.applied_to.is_(False),
            Job.created_at >= since,
        )
        .order_by(Job.created_at.asc())
        .limit(MATCH_BATCH_SIZE)
        .all()
    )
    result = {"processed": 0, "notified": 0, "auto_applied": 0}
    if not jobs:
        return result

    candidate = candidate_context(db, user.id)
    left_today = max(0, settings.max_applications_per_day - count_applications_today(db, user.id))

    for job in jobs:
        if job.match_score is None:
            analysis = job_matcher.score_job(candidate, job_context(job))
            job.match_score = analysis.match_score
            job.match_analysis = analysis.model_dump()
        job.processed = True
        action = handle_scored_job(db, user, job, settings, candidate, left_today)
        result["processed"] += 1
        if action == "auto_apply":
            result["auto_applied"] += 1
            left_today -= 1
        elif action == "notify":
            result["notified"] += 1
        db.commit()

    logger.info(f"[{user.id}] Processed {result['processed']} matches: {result}")
    return result


def get_notifications(
    db: Session,
    user_id: str,
    *,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[JobNotification], int]:
    query = db.query(JobNotification).filter(JobNotification.user_id == user_id)
    if status:
        query = query.filter(JobNotification.status == status)
    total = query.count()
    items = query.order_by(JobNotification.created_at.desc()).offset(offset).limit(limit).all()
    return items, total


def mark_viewed(db: Session, user_id: str, notification_id: str) -> JobNotification | None:
    notification = (
        db.query(JobNotification)
        .filter(JobNotification.id == notification_id, JobNotification.user_id == user_id)
        .first()
    )
    if notification is None:
        return None
    if notification.status == NotificationStatus.PENDING:
        notification.status = NotificationStatus.VIEWED
        notification.viewed_at = utcnow()
        db.commit()
    return notification


def get_pending_reviews(db: Session, user_id: str) -> list[ApplicationReview]:
    return (
        db.query(ApplicationReview)
        .filter(
            ApplicationReview.user_id == user_id,
            ApplicationReview.status == ReviewStatus.PENDING,
            ApplicationReview.expires_at > utcnow(),
        )
        .order_by(ApplicationReview.created_at.desc())
        .all()
    )


def _get_review(db: Session, user_id: str, review_id: str) -> ApplicationReview | None:
    return (
        db.query(ApplicationReview)
        .filter(ApplicationReview.id == review_id, ApplicationReview.user_id == user_id)
        .first()
    )


def _set_notification_status(db: Session, review: ApplicationReview, status: NotificationStatus) -> None:
    if review.notification_id:
        notification = db.get(JobNotification, review.notification_id)
        if notification is not None:
            notification.status = status


def approve_review(
    db: Session,
    user: User,
    review_id: str,
    *,
    notes: str | None = None,
    cover_letter: str | None = None,
) -> ApplicationReview | None:
    """Approve a pending review and file the application."""
    review = _get_review(db, user.id, review_id)
    if review is None:
        return None
    if review.status != ReviewStatus.PENDING:
        raise ReviewStateError(f"Review already {review.status.lower()}")
    if review.expires_at <= utcnow():
        raise ReviewStateError("Review has expired")

    job = db.get(Job, review.job_id)
    if job is None:
        raise ReviewStateError("Job for this review no longer exists")

    plans.require_auto_application_quota(user)
    review.status = ReviewStatus.APPROVED
    review.reviewed_at = utcnow()
    review.user_notes = notes
    if cover_letter:
        review.cover_letter = cover_letter

    apply_to_job(
        db,
        user.id,
        job,
        cover_letter=review.cover_letter,
        notes=f"User approved: {notes}" if notes else "User approved application",
        commit=False,
    )
    plans.consume_auto_application(db, user, commit=False)
    review.status = ReviewStatus.SUBMITTED
    _set_notification_status(db, review, NotificationStatus.APPLIED)
    db.commit()
    logger.info(f"[{review.id}] Review approved, applied to {job.title} at {job.company}")
    return review


def reject_review(db: Session, user_id: str, review_id: str, notes: str | None = None) -> ApplicationReview | None:
    review = _get_review(db, user_id, review_id)
    if review is None:
        return None
    if review.status != ReviewStatus.PENDING:
        raise ReviewStateError(f"Review already {review.status.lower()}")

    review.status = ReviewStatus.REJECTED
    review.reviewed_at = utcnow()
    review.user_notes = notes
    _set_notification_status(db, review, NotificationStatus.REJECTED)
    db.commit()
    return review


def process_expired_reviews(db: Session) -> int:
    """Expire pending reviews that ran past their deadline."""
    now = utcnow()
    reviews = (
        db.query(ApplicationReview)
        .filter(ApplicationReview.status == ReviewStatus.PENDING, ApplicationReview.expires_at < now)
        .all()
    )
    for review in reviews:
        review.status = ReviewStatus.EXPIRED
        _set_notification_status(db, review, NotificationStatus.EXPIRED)
    db.commit()
    if reviews:
        logger.info(f"Expired {len(reviews)} application reviews")
    return len(reviews)


def cleanup_expired_notifications(db: Session) -> dict[str, int]:
    """Expire stale notifications and delete old expired ones."""
    now = utcnow()
    expired = (
        db.query(JobNotification)
        .filter(
            JobNotification.status.in_((NotificationStatus.PENDING, NotificationStatus.VIEWED)),
            JobNotification.expires_at < now - timedelta(days=EXPIRED_GRACE_DAYS),
        )
        .update({JobNotification.status: NotificationStatus.EXPIRED}, synchronize_session=False)
    )

    old_ids = [
        row.id
        for row in db.query(JobNotification.id).filter(
            JobNotification.status == NotificationStatus.EXPIRED,
            or_(
                JobNotification.expires_at < now - timedelta(days=EXPIRED_RETENTION_DAYS),
                JobNotification.created_at < now - timedelta(days=EXPIRED_RETENTION_DAYS),
            ),
        )
    ]
    deleted = 0
    if old_ids:
        # Reviews point at notifications
        db.query(ApplicationReview).filter(ApplicationReview.notification_id.in_(old_ids)).update(
            {ApplicationReview.notification_id: None}, synchronize_session=False
        )
        deleted = (
            db.query(JobNotification)
            .filter(JobNotification.id.in_(old_ids))
            .delete(synchronize_session=False)
        )
    db.commit()
    logger.info(f"Notification cleanup: {expired} expired, {deleted} deleted")
    return {"expired": expired, "deleted": deleted}
