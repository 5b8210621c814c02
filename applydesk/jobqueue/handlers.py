"""
Queue handlers.

Each handler takes the row's payload and a session and returns a
``JobOutcome``. Bad payloads and missing rows fail without retry; model and
search outages are retried.
"""

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from applydesk.agents import cover_letter as cover_letter_agent
from applydesk.agents import job_matcher
from applydesk.agents.context import candidate_context, job_context
from applydesk.agents.llm import LLMError
from applydesk.config import settings
from applydesk.db import Application, ApplicationReview, Job, JobNotification, ReviewStatus, User
from applydesk.jobqueue.database_queue import cleanup_old_jobs
from applydesk.jobqueue.types import JobHandler, JobOutcome, JobType
from applydesk.services import job_scanner, notifications, plans, resume_customizer
from applydesk.services.applications import apply_to_job, find_application_for_job, start_of_day
from applydesk.tools.jsearch import JobSearchError

logger = logging.getLogger(__name__)

SCAN_BUSY_RETRY_SECONDS = 60


def _missing(payload: dict[str, Any], *keys: str) -> JobOutcome | None:
    absent = [key for key in keys if not payload.get(key)]
    if absent:
        return JobOutcome.failed(f"Missing {', '.join(absent)} in payload", retry=False)
    return None


def _load_job(db: Session, payload: dict[str, Any]) -> Job | None:
    query = db.query(Job).filter(Job.id == payload["job_id"])
    if payload.get("user_id"):
        query = query.filter(Job.user_id == payload["user_id"])
    return query.first()


def handle_automated_job_scan(payload: dict[str, Any], db: Session) -> JobOutcome:
    totals = job_scanner.scan_enabled_users(db)
    return JobOutcome.ok(**totals)


def handle_user_job_scan(payload: dict[str, Any], db: Session) -> JobOutcome:
    missing = _missing(payload, "user_id")
    if missing:
        return missing
    try:
        result = job_scanner.scan_user(db, payload["user_id"])
    except job_scanner.ScanInProgressError as e:
        return JobOutcome.failed(str(e), retry_delay=SCAN_BUSY_RETRY_SECONDS)
    except JobSearchError as e:
        return JobOutcome.failed(f"Job search unavailable: {e}")
    except ValueError as e:
        return JobOutcome.failed(str(e), retry=False)
    return JobOutcome.ok(**result.to_dict())


def handle_process_job_matches(payload: dict[str, Any], db: Session) -> JobOutcome:
    return JobOutcome.ok(**notifications.process_job_matches(db, payload.get("user_id")))


def handle_analyze_job_match(payload: dict[str, Any], db: Session) -> JobOutcome:
    missing = _missing(payload, "job_id")
    if missing:
        return missing
    job = _load_job(db, payload)
    if job is None:
        return JobOutcome.failed(f"Job {payload['job_id']} not found", retry=False)

    analysis = job_matcher.score_job(candidate_context(db, job.user_id), job_context(job))
    job.match_score = analysis.match_score
    job.match_analysis = analysis.model_dump()
    db.commit()
    return JobOutcome.ok(match_score=analysis.match_score, source=analysis.source)


def handle_generate_cover_letter(payload: dict[str, Any], db: Session) -> JobOutcome:
    missing = _missing(payload, "job_id")
    if missing:
        return missing
    job = _load_job(db, payload)
    if job is None:
        return JobOutcome.failed(f"Job {payload['job_id']} not found", retry=False)

    try:
        letter = cover_letter_agent.generate_cover_letter(
            candidate_context(db, job.user_id), job_context(job), payload.get("tone", "professional")
        )
    except LLMError as e:
        return JobOutcome.failed(f"Cover letter generation failed: {e}")

    job.cover_letter = letter
    # Pending reviews pick up the letter so approval can use it
    db.query(ApplicationReview).filter(
        ApplicationReview.job_id == job.id,
        ApplicationReview.status == ReviewStatus.PENDING,
        ApplicationReview.cover_letter.is_(None),
    ).update({ApplicationReview.cover_letter: letter}, synchronize_session=False)
    db.commit()
    return JobOutcome.ok(length=len(letter))


def handle_customize_resume(payload: dict[str, Any], db: Session) -> JobOutcome:
    missing = _missing(payload, "user_id", "job_id")
    if missing:
        return missing
    job = _load_job(db, payload)
    if job is None:
        return JobOutcome.failed(f"Job {payload['job_id']} not found", retry=False)
    try:
        customized = resume_customizer.customize_for_job(db, payload["user_id"], job)
    except LookupError as e:
        return JobOutcome.failed(str(e), retry=False)
    return JobOutcome.ok(customized_resume_id=customized.id, match_score=customized.match_score)


def handle_process_application(payload: dict[str, Any], db: Session) -> JobOutcome:
    missing = _missing(payload, "user_id", "job_id")
    if missing:
        return missing
    user = db.get(User, payload["user_id"])
    job = _load_job(db, payload)
    if user is None or job is None:
        return JobOutcome.failed("User or job not found", retry=False)

    existing = find_application_for_job(db, user.id, job.id)
    if existing is not None:
        return JobOutcome.ok(application_id=existing.id, skipped=True)

    try:
        plans.require_auto_application_quota(user)
    except plans.QuotaError as e:
        return JobOutcome.failed(f"{e.code}: {e}", retry=False)

    application = apply_to_job(
        db,
        user.id,
        job,
        cover_letter=payload.get("cover_letter"),
        notes=payload.get("notes", "Submitted from queue"),
        commit=False,
    )
    plans.consume_auto_application(db, user, commit=False)
    db.commit()
    return JobOutcome.ok(application_id=application.id)


def handle_cleanup_expired_reviews(payload: dict[str, Any], db: Session) -> JobOutcome:
    return JobOutcome.ok(expired=notifications.process_expired_reviews(db))


def handle_cleanup_expired_notifications(payload: dict[str, Any], db: Session) -> JobOutcome:
    return JobOutcome.ok(**notifications.cleanup_expired_notifications(db))


def handle_send_daily_summary(payload: dict[str, Any], db: Session) -> JobOutcome:
    """Log what each user got today. Delivery is left to an email integration."""
    since = start_of_day()
    applications = dict(
        db.query(Application.user_id, func.count(Application.id))
        .filter(Application.applied_at >= since)
        .group_by(Application.user_id)
        .all()
    )
    matches = dict(
        db.query(JobNotification.user_id, func.count(JobNotification.id))
        .filter(JobNotification.created_at >= since)
        .group_by(JobNotification.user_id)
        .all()
    )
    for user_id in sorted(set(applications) | set(matches)):
        logger.info(
            f"[{user_id}] Daily summary: {applications.get(user_id, 0)} applications, "
            f"{matches.get(user_id, 0)} matches"
        )
    return JobOutcome.ok(users=len(set(applications) | set(matches)))


def handle_cleanup_queue(payload: dict[str, Any], db: Session) -> JobOutcome:
    days = int(payload.get("older_than_days") or settings.queue_retention_days)
    return JobOutcome.ok(deleted=cleanup_old_jobs(db, days))


def build_handlers() -> dict[str, JobHandler]:
    return {
        JobType.AUTOMATED_JOB_SCAN: handle_automated_job_scan,
        JobType.USER_JOB_SCAN: handle_user_job_scan,
        JobType.PROCESS_JOB_MATCHES: handle_process_job_matches,
        JobType.ANALYZE_JOB_MATCH: handle_analyze_job_match,
        JobType.GENERATE_COVER_LETTER: handle_generate_cover_letter,
        JobType.CUSTOMIZE_RESUME: handle_customize_resume,
        JobType.PROCESS_APPLICATION: handle_process_application,
        JobType.CLEANUP_EXPIRED_REVIEWS: handle_cleanup_expired_reviews,
        JobType.CLEANUP_EXPIRED_NOTIFICATIONS: handle_cleanup_expired_notifications,
        JobType.SEND_DAILY_SUMMARY: handle_send_daily_summary,
        JobType.CLEANUP_QUEUE: handle_cleanup_queue,
    }
