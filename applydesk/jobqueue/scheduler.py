"""
Recurring and one-off job scheduling.

Recurring jobs are described with a five-field cron expression but only the
simple shapes below are understood; they are converted to a fixed interval.

- ``*/N * * * *``  every N minutes
- ``M */N * * *``  every N hours
- ``M H * * *``    daily
- anything else with five fields runs hourly
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from applydesk.config import settings
from applydesk.db import session_scope, utcnow
from applydesk.jobqueue.database_queue import enqueue_job
from applydesk.jobqueue.types import JobType

logger = logging.getLogger(__name__)


@dataclass
class ScheduleConfig:
    """A recurring job definition."""

    cron_expression: str
    enabled: bool = True
    max_attempts: int = 3
    timeout: float = 300.0  # seconds
    payload: dict[str, Any] | None = None


def default_schedules() -> dict[str, ScheduleConfig]:
    return {
        JobType.AUTOMATED_JOB_SCAN: ScheduleConfig("0 */4 * * *", max_attempts=2, timeout=600),
        JobType.CLEANUP_EXPIRED_REVIEWS: ScheduleConfig("0 */6 * * *", timeout=120),
        JobType.CLEANUP_EXPIRED_NOTIFICATIONS: ScheduleConfig("0 2 * * *", timeout=300),
        JobType.SEND_DAILY_SUMMARY: ScheduleConfig("0 9 * * *", enabled=False, max_attempts=2, timeout=120),
        JobType.CLEANUP_QUEUE: ScheduleConfig(
            "30 3 * * *", max_attempts=1, payload={"older_than_days": settings.queue_retention_days}
        ),
    }


def cron_to_interval(expression: str) -> int:
    """Convert a cron expression to an interval in seconds (0 = invalid)."""
    parts = expression.split()
    if len(parts) != 5:
        return 0
    minute, hour = parts[0], parts[1]

    if minute.startswith("*/") and hour == "*":
        return _step(minute) * 60
    if hour.startswith("*/"):
        return _step(hour) * 3600
    if minute.isdigit() and hour.isdigit():
        return 24 * 3600
    return 3600


def _step(field: str) -> int:
    try:
        return max(1, int(field[2:]))
    except ValueError:
        return 1


class JobScheduler:
    """Enqueues recurring jobs when they come due and offers one-off helpers."""

    def __init__(self, session_factory: sessionmaker, schedules: dict[str, ScheduleConfig] | None = None):
        self.session_factory = session_factory
        self.schedules = schedules if schedules is not None else default_schedules()
        self._last_run: dict[str, datetime] = {}

    def run_startup_jobs(self) -> None:
        """Jobs that should not wait a full interval after a restart."""
        config = self.schedules.get(JobType.CLEANUP_EXPIRED_REVIEWS)
        if config and config.enabled:
            self._enqueue_recurring(JobType.CLEANUP_EXPIRED_REVIEWS, config)

    def due_jobs(self, now: datetime | None = None) -> list[str]:
        """Enqueue every enabled schedule whose interval has elapsed."""
        now = now or utcnow()
        enqueued = []
        for job_type, config in self.schedules.items():
            if not config.enabled:
                continue
            interval = cron_to_interval(config.cron_expression)
            if interval <= 0:
                continue
            last = self._last_run.get(job_type)
            if last is not None and now - last < timedelta(seconds=interval):
                continue
            self._enqueue_recurring(job_type, config)
            self._last_run[job_type] = now
            enqueued.append(job_type)
        return enqueued

    def _enqueue_recurring(self, job_type: str, config: ScheduleConfig) -> str:
        with session_scope(self.session_factory) as db:
            return enqueue_job(
                db,
                job_type,
                dict(config.payload or {}),
                max_attempts=config.max_attempts,
                deduplication_key=f"scheduled_{job_type}",
            )

    def timeouts(self) -> dict[str, float]:
        return {job_type: config.timeout for job_type, config in self.schedules.items()}

    def update_schedule(self, job_type: str, **changes: Any) -> ScheduleConfig:
        if job_type not in self.schedules:
            raise KeyError(f"Unknown schedule: {job_type}")
        config = self.schedules[job_type]
        for key, value in changes.items():
            if not hasattr(config, key):
                raise AttributeError(f"Unknown schedule field: {key}")
            setattr(config, key, value)
        logger.info(f"Updated schedule {job_type}: {changes}")
        return config

    def get_schedules(self) -> dict[str, dict[str, Any]]:
        return describe_schedules(self.schedules)


def describe_schedules(schedules: dict[str, ScheduleConfig] | None = None) -> dict[str, dict[str, Any]]:
    schedules = schedules if schedules is not None else default_schedules()
    return {
        str(job_type): {**asdict(config), "interval_seconds": cron_to_interval(config.cron_expression)}
        for job_type, config in schedules.items()
    }


# One-off helpers used by the API. They write through the request session.


def schedule_user_job_scan(db: Session, user_id: str) -> str:
    return enqueue_job(
        db,
        JobType.USER_JOB_SCAN,
        {"user_id": user_id},
        user_id=user_id,
        max_attempts=2,
        deduplication_key=f"user_scan_{user_id}",
    )


def schedule_job_matching(db: Session, user_id: str) -> str:
    return enqueue_job(
        db,
        JobType.PROCESS_JOB_MATCHES,
        {"user_id": user_id},
        user_id=user_id,
        deduplication_key=f"match_{user_id}",
    )


def schedule_cover_letter_generation(db: Session, user_id: str, job_id: str) -> str:
    return enqueue_job(
        db,
        JobType.GENERATE_COVER_LETTER,
        {"user_id": user_id, "job_id": job_id},
        user_id=user_id,
        deduplication_key=f"cover_letter_{job_id}",
    )


def schedule_resume_customization(db: Session, user_id: str, job_id: str) -> str:
    return enqueue_job(
        db,
        JobType.CUSTOMIZE_RESUME,
        {"user_id": user_id, "job_id": job_id},
        user_id=user_id,
        deduplication_key=f"customize_{job_id}",
    )


def schedule_application_processing(db: Session, user_id: str, job_id: str) -> str:
    return enqueue_job(
        db,
        JobType.PROCESS_APPLICATION,
        {"user_id": user_id, "job_id": job_id},
        user_id=user_id,
        max_attempts=2,
        deduplication_key=f"apply_{job_id}",
    )
