"""Job types, default priorities and handler results."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy.orm import Session


class JobType(StrEnum):
    AUTOMATED_JOB_SCAN = "automated_job_scan"
    USER_JOB_SCAN = "user_job_scan"
    PROCESS_JOB_MATCHES = "process_job_matches"
    ANALYZE_JOB_MATCH = "analyze_job_match"
    GENERATE_COVER_LETTER = "generate_cover_letter"
    CUSTOMIZE_RESUME = "customize_resume"
    PROCESS_APPLICATION = "process_application"
    CLEANUP_EXPIRED_REVIEWS = "cleanup_expired_reviews"
    CLEANUP_EXPIRED_NOTIFICATIONS = "cleanup_expired_notifications"
    SEND_DAILY_SUMMARY = "send_daily_summary"
    CLEANUP_QUEUE = "cleanup_queue"


# Higher runs first
DEFAULT_PRIORITIES: dict[str, int] = {
    JobType.USER_JOB_SCAN: 10,
    JobType.PROCESS_JOB_MATCHES: 9,
    JobType.PROCESS_APPLICATION: 8,
    JobType.ANALYZE_JOB_MATCH: 8,
    JobType.AUTOMATED_JOB_SCAN: 7,
    JobType.GENERATE_COVER_LETTER: 6,
    JobType.CUSTOMIZE_RESUME: 6,
    JobType.CLEANUP_EXPIRED_REVIEWS: 4,
    JobType.CLEANUP_EXPIRED_NOTIFICATIONS: 3,
    JobType.SEND_DAILY_SUMMARY: 2,
    JobType.CLEANUP_QUEUE: 1,
}

DEFAULT_PRIORITY = 5


def get_default_priority(job_type: str) -> int:
    return DEFAULT_PRIORITIES.get(job_type, DEFAULT_PRIORITY)


@dataclass
class JobOutcome:
    """Result returned by a queue handler."""

    success: bool
    error: str | None = None
    retry: bool = True
    retry_delay: float | None = None  # seconds; None = exponential backoff
    data: dict[str, Any] | None = None

    @classmethod
    def ok(cls, **data: Any) -> "JobOutcome":
        return cls(success=True, data=data or None)

    @classmethod
    def failed(cls, error: str, retry: bool = True, retry_delay: float | None = None) -> "JobOutcome":
        return cls(success=False, error=error, retry=retry, retry_delay=retry_delay)


JobHandler = Callable[[dict[str, Any], Session], JobOutcome]
