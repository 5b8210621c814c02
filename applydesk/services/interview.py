"""
Mock interview sessions.

A session belongs to one application. Questions are generated one at a
time; answering the last one completes the session.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from applydesk.agents import interviewer
from applydesk.agents.context import candidate_context, job_context
from applydesk.agents.llm import LLMError
from applydesk.config import settings
from applydesk.db import (
    Application,
    InterviewQuestion,
    InterviewSession,
    InterviewStatus,
    Job,
    Profile,
    StructuredResume,
    User,
    utcnow,
)
from applydesk.services import plans

logger = logging.getLogger(__name__)


class InterviewNotFoundError(LookupError):
    """Application, session or question does not exist for this user."""


class ResumeRequiredError(ValueError):
    """The user has no résumé to interview against."""


class SessionCompletedError(Exception):
    """The session has no more questions to ask."""


@dataclass
class StartedSession:
    session: InterviewSession
    existing: bool


def has_resume(db: Session, user_id: str) -> bool:
    if db.query(StructuredResume.id).filter(StructuredResume.user_id == user_id).first():
        return True
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    return bool(profile and profile.resume_text and profile.resume_text.strip())


def start_session(db: Session, user: User, application_id: str, total_questions: int | None = None) -> StartedSession:
    """Start (or resume) a mock interview for one of the user's applications."""
    plans.require_mock_interview_quota(user)

    application = (
        db.query(Application)
        .filter(Application.id == application_id, Application.user_id == user.id)
        .first()
    )
    if application is None:
        raise InterviewNotFoundError("Application not found")
    if not has_resume(db, user.id):
        raise ResumeRequiredError("Resume not found. Please add a resume first.")

    existing = (
        db.query(InterviewSession)
        .filter(
            InterviewSession.application_id == application_id,
            InterviewSession.user_id == user.id,
            InterviewSession.status == InterviewStatus.IN_PROGRESS,
        )
        .first()
    )
    if existing is not None:
        return StartedSession(existing, existing=True)

    plans.consume_mock_interview(db, user, commit=False)
    session = InterviewSession(
        user_id=user.id,
        application_id=application.id,
        job_title=application.job_title,
        company=application.company,
        total_questions=total_questions or settings.interview_question_count,
    )
    db.add(session)
    db.commit()
    logger.info(f"[{session.id}] Interview started for application {application_id}")
    return StartedSession(session, existing=False)


def get_session(db: Session, user_id: str, session_id: str) -> InterviewSession:
    session = (
        db.query(InterviewSession)
        .filter(InterviewSession.id == session_id, InterviewSession.user_id == user_id)
        .first()
    )
    if session is None:
        raise InterviewNotFoundError("Interview session not found")
    return session


def _interview_job(db: Session, session: InterviewSession) -> dict[str, Any]:
    application = db.get(Application, session.application_id)
    job = db.get(Job, application.job_id) if application and application.job_id else None
    if job is not None:
        return job_context(job)
    return {"title": session.job_title, "company": session.company}


def next_question(db: Session, user: User, session_id: str) -> InterviewQuestion:
    """Generate, store and return the session's next question."""
    session = get_session(db, user.id, session_id)
    index = len(session.questions)
    if session.status != InterviewStatus.IN_PROGRESS or index >= session.total_questions:
        raise SessionCompletedError("Interview session is already completed")

    category = interviewer.question_category(index, session.total_questions)
    try:
        text = interviewer.generate_interview_question(
            _interview_job(db, session),
            candidate_context(db, user.id),
            index,
            session.total_questions,
            previous=[q.question_text for q in session.questions],
        )
    except LLMError as e:
        logger.warning(f"[{session.id}] Using built-in question {index}: {e}")
        text = interviewer.builtin_question(session.job_title, index, session.total_questions)

    question = InterviewQuestion(
        session_id=session.id,
        question_index=index,
        category=category,
        question_text=text,
    )
    db.add(question)
    session.current_question = index
    db.commit()
    return question


def submit_answer(db: Session, user: User, question_id: str, answer_text: str) -> dict[str, Any]:
    question = (
        db.query(InterviewQuestion)
        .join(InterviewSession, InterviewQuestion.session_id == InterviewSession.id)
        .filter(InterviewQuestion.id == question_id, InterviewSession.user_id == user.id)
        .first()
    )
    if question is None:
        raise InterviewNotFoundError("Question not found")

    session = question.session
    question.answer_text = answer_text
    question.answered_at = utcnow()

    is_completed = question.question_index >= session.total_questions - 1
    if is_completed:
        session.status = InterviewStatus.COMPLETED
        session.completed_at = utcnow()
        logger.info(f"[{session.id}] Interview completed")
    db.commit()

    return {
        "question_id": question.id,
        "is_completed": is_completed,
        "next_question_index": None if is_completed else question.question_index + 1,
        "total_questions": session.total_questions,
    }


def list_sessions(db: Session, user_id: str) -> list[InterviewSession]:
    return (
        db.query(InterviewSession)
        .filter(InterviewSession.user_id == user_id)
        .order_by(InterviewSession.started_at.desc())
        .all()
    )
