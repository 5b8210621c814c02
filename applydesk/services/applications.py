"""Application tracking."""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from applydesk.db import Application, ApplicationStatus, Job, utcnow

logger = logging.getLogger(__name__)


class DuplicateApplicationError(Exception):
    """The user already applied to this job."""


def find_application_for_job(db: Session, user_id: str, job_id: str) -> Application | None:
    return (
        db.query(Application)
        .filter(Application.user_id == user_id, Application.job_id == job_id)
        .first()
    )


def create_application(
    db: Session,
    user_id: str,
    *,
    job_title: str,
    company: str,
    job_url: str = "",
    job_id: str | None = None,
    status: str = ApplicationStatus.APPLIED,
    cover_letter: str | None = None,
    notes: str = "",
    commit: bool = True,
) -> Application:
    if job_id and find_application_for_job(db, user_id, job_id):
        raise DuplicateApplicationError(f"Already applied to job {job_id}")

    application = Application(
        user_id=user_id,
        job_id=job_id,
        job_title=job_title,
        company=company,
        job_url=job_url,
        status=status,
        cover_letter=cover_letter,
        notes=notes,
    )
    db.add(application)
    if commit:
        db.commit()
    else:
        db.flush()
    logger.info(f"[{application.id}] Application created: {job_title} at {company}")
    return application


def apply_to_job(
    db: Session,
    user_id: str,
    job: Job,
    *,
    cover_letter: str | None = None,
    notes: str = "",
    commit: bool = True,
) -> Application:
    """File an application for a saved job and flag the job as applied."""
    application = create_application(
        db,
        user_id,
        job_title=job.title,
        company=job.company,
        job_url=job.apply_url,
        job_id=job.id,
        cover_letter=cover_letter or job.cover_letter,
        notes=notes,
        commit=False,
    )
    job.applied_to = True
    if commit:
        db.commit()
    return application


def start_of_day(now: datetime | None = None) -> datetime:
    now = now or utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def count_applications_today(db: Session, user_id: str) -> int:
    return (
        db.query(func.count(Application.id))
        .filter(Application.user_id == user_id, Application.applied_at >= start_of_day())
        .scalar()
    )


def application_stats(db: Session, user_id: str) -> dict[str, Any]:
    by_status = dict(
        db.query(Application.status, func.count(Application.id))
        .filter(Application.user_id == user_id)
        .group_by(Application.status)
        .all()
    )
    week_ago = utcnow() - timedelta(days=7)
    this_week = (
        db.query(func.count(Application.id))
        .filter(Application.user_id == user_id, Application.applied_at >= week_ago)
        .scalar()
    )
    return {
        "total": sum(by_status.values()),
        "this_week": this_week,
        "by_status": {status.value: by_status.get(status, 0) for status in ApplicationStatus},
    }


def list_applications(
    db: Session,
    user_id: str,
    *,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Application], int]:
    query = db.query(Application).filter(Application.user_id == user_id)
    if status:
        query = query.filter(Application.status == status)
    total = query.count()
    items = query.order_by(Application.applied_at.desc()).offset(offset).limit(limit).all()
    return items, total
