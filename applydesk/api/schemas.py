"""API request/response schemas."""

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from applydesk.db import ApplicationStatus

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None


def envelope(data: Any, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


class MessageResponse(BaseModel):
    message: str


# Users / auth
class UserCreate(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    name: str = Field(default="", max_length=255)
    password: str | None = Field(default=None, min_length=8, description="Omit for OAuth-only accounts")


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    subscription_plan: str
    subscription_status: str
    trial_ends_at: datetime | None
    has_interview_addon: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ForgotPasswordRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)


# Profile
class ProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    location: str | None = None
    summary: str | None = None
    skills: list[dict[str, Any]] | None = Field(default=None, description="[{name, proficiency, years}]")
    experience_years: int | None = Field(default=None, ge=0, le=70)
    job_titles: list[str] | None = None
    preferred_locations: list[str] | None = None
    employment_types: list[str] | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)


class ProfileResponse(BaseModel):
    user_id: str
    full_name: str
    phone: str | None
    location: str | None
    summary: str
    skills: list[dict[str, Any]]
    experience_years: int | None
    job_titles: list[str]
    preferred_locations: list[str]
    employment_types: list[str]
    salary_min: int | None
    salary_max: int | None
    updated_at: datetime

    class Config:
        from_attributes = True


# Résumé
class ContactInfo(BaseModel):
    full_name: str = Field(default="", alias="fullName")
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin: str | None = None
    website: str | None = None

    class Config:
        populate_by_name = True


class StructuredResumeUpdate(BaseModel):
    contact_info: ContactInfo = Field(default_factory=ContactInfo, alias="contactInfo")
    summary: str = ""
    experience: list[dict[str, Any]] = Field(default_factory=list)
    education: list[dict[str, Any]] = Field(default_factory=list)
    skills: list[dict[str, Any]] = Field(default_factory=list)
    certifications: list[Any] = Field(default_factory=list)
    projects: list[Any] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class StructuredResumeResponse(BaseModel):
    id: str
    contact_info: dict[str, Any]
    summary: str
    experience: list[dict[str, Any]]
    education: list[dict[str, Any]]
    skills: list[dict[str, Any]]
    certifications: list[Any]
    projects: list[Any]
    is_complete: bool
    completion_percentage: int
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomizedResumeResponse(BaseModel):
    id: str
    job_id: str
    content: dict[str, Any]
    match_score: float
    keywords: list[str]
    created_at: datetime

    class Config:
        from_attributes = True


# Jobs
class JobResponse(BaseModel):
    id: str
    source: str
    source_job_id: str | None
    title: str
    company: str
    location: str
    description: str
    requirements: list[str]
    salary: str | None
    employment_type: str | None
    apply_url: str
    is_remote: bool
    posted_at: datetime | None
    match_score: float | None
    match_analysis: dict[str, Any]
    cover_letter: str | None
    applied_to: bool
    created_at: datetime

    class Config:
        from_attributes = True


QueueableJobType = Literal[
    "user_job_scan",
    "process_job_matches",
    "generate_cover_letter",
    "customize_resume",
    "process_application",
]


class QueueJobRequest(BaseModel):
    type: QueueableJobType
    job_id: str | None = None


class QueueCleanupRequest(BaseModel):
    days: int = Field(default=7, ge=1, le=365)


class QueueRowResponse(BaseModel):
    id: str
    type: str
    status: str
    priority: int
    attempt_count: int
    max_attempts: int
    created_at: datetime
    processed_at: datetime | None

    class Config:
        from_attributes = True


# Auto-apply
class AutoApplySettingsUpdate(BaseModel):
    is_enabled: bool | None = None
    auto_apply_enabled: bool | None = None
    require_approval: bool | None = None
    notify_on_match: bool | None = None
    min_match_score: float | None = Field(default=None, ge=0, le=1)
    notify_min_score: float | None = Field(default=None, ge=0, le=1)
    max_applications_per_day: int | None = Field(default=None, ge=1, le=50)
    review_timeout_hours: int | None = Field(default=None, ge=1, le=168)
    job_titles: list[str] | None = None
    locations: list[str] | None = None
    excluded_companies: list[str] | None = None
    excluded_keywords: list[str] | None = None
    require_salary_range: bool | None = None


class AutoApplySettingsResponse(BaseModel):
    is_enabled: bool
    auto_apply_enabled: bool
    require_approval: bool
    notify_on_match: bool
    min_match_score: float
    notify_min_score: float
    max_applications_per_day: int
    review_timeout_hours: int
    job_titles: list[str]
    locations: list[str]
    excluded_companies: list[str]
    excluded_keywords: list[str]
    require_salary_range: bool
    last_scan_at: datetime | None

    class Config:
        from_attributes = True


# AI
class InlineJob(BaseModel):
    job_id: str | None = None
    job_title: str | None = None
    company: str | None = None
    job_description: str = ""
    requirements: list[str] = Field(default_factory=list)


class CoverLetterRequest(InlineJob):
    tone: Literal["professional", "enthusiastic", "conversational", "formal"] = "professional"


class CustomizeResumeRequest(BaseModel):
    job_id: str = Field(min_length=1)


# Applications
class ApplicationCreate(BaseModel):
    job_title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    job_url: str = ""
    job_id: str | None = None
    status: ApplicationStatus = ApplicationStatus.APPLIED
    cover_letter: str | None = None
    notes: str = ""


class ApplicationUpdate(BaseModel):
    status: ApplicationStatus | None = None
    notes: str | None = None
    cover_letter: str | None = None


class ApplicationResponse(BaseModel):
    id: str
    job_id: str | None
    job_title: str
    company: str
    job_url: str
    status: str
    cover_letter: str | None
    notes: str
    applied_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    stats: dict[str, Any]
    pagination: Pagination


# Notifications / reviews
class NotificationResponse(BaseModel):
    id: str
    job_id: str
    match_score: float
    status: str
    message: str
    expires_at: datetime
    viewed_at: datetime | None
    created_at: datetime
    job_title: str | None = None
    company: str | None = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: Pagination


class NotificationAction(BaseModel):
    action: str


class ReviewResponse(BaseModel):
    id: str
    job_id: str
    notification_id: str | None
    status: str
    cover_letter: str | None
    match_score: float
    user_notes: str | None
    expires_at: datetime
    reviewed_at: datetime | None
    created_at: datetime
    job: JobResponse | None = None

    class Config:
        from_attributes = True


class ReviewDecision(BaseModel):
    notes: str | None = None
    cover_letter: str | None = None


# Interview
class InterviewStartRequest(BaseModel):
    application_id: str = Field(min_length=1)
    total_questions: int | None = Field(default=None, ge=1, le=10)


class NextQuestionRequest(BaseModel):
    session_id: str = Field(min_length=1)


class SubmitAnswerRequest(BaseModel):
    question_id: str = Field(min_length=1)
    answer_text: str = Field(min_length=1)


class InterviewQuestionResponse(BaseModel):
    id: str
    session_id: str
    question_index: int
    category: str
    question_text: str
    answer_text: str | None
    answered_at: datetime | None

    class Config:
        from_attributes = True


class InterviewSessionResponse(BaseModel):
    id: str
    application_id: str
    job_title: str
    company: str
    status: str
    total_questions: int
    current_question: int
    started_at: datetime
    completed_at: datetime | None

    class Config:
        from_attributes = True


class InterviewSessionDetail(InterviewSessionResponse):
    questions: list[InterviewQuestionResponse] = Field(default_factory=list)


class SubmitAnswerResponse(BaseModel):
    question_id: str
    is_completed: bool
    next_question_index: int | None
    total_questions: int


# Plans
class PlanChangeRequest(BaseModel):
    plan: str
    status: Literal["trialing", "active", "canceled", "past_due"] | None = None
    has_interview_addon: bool | None = None
