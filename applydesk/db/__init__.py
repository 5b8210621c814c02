"""Database package."""

from applydesk.db.base import Base, get_db, get_engine, get_session_factory, init_db, session_scope, utcnow
from applydesk.db.tables import (
    Application,
    ApplicationReview,
    ApplicationStatus,
    AutoApplySettings,
    CustomizedResume,
    InterviewQuestion,
    InterviewSession,
    InterviewStatus,
    Job,
    JobNotification,
    JobQueue,
    NotificationStatus,
    PasswordResetToken,
    Profile,
    QueueStatus,
    ReviewStatus,
    StructuredResume,
    User,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_db",
    "session_scope",
    "utcnow",
    "User",
    "Profile",
    "AutoApplySettings",
    "Job",
    "JobQueue",
    "QueueStatus",
    "Application",
    "ApplicationStatus",
    "StructuredResume",
    "CustomizedResume",
    "InterviewSession",
    "InterviewQuestion",
    "InterviewStatus",
    "JobNotification",
    "NotificationStatus",
    "ApplicationReview",
    "ReviewStatus",
    "PasswordResetToken",
]
