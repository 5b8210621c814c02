"""Mock interview endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user, quota_error
from applydesk.api.errors import BadRequestError, ConflictError, NotFoundError
from applydesk.api.schemas import (
    Envelope,
    InterviewQuestionResponse,
    InterviewSessionDetail,
    InterviewSessionResponse,
    InterviewStartRequest,
    NextQuestionRequest,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    envelope,
)
from applydesk.db import User, get_db
from applydesk.services import interview
from applydesk.services.plans import QuotaError

router = APIRouter()


@router.post("/start", response_model=Envelope[InterviewSessionResponse])
def start(data: InterviewStartRequest, user: User = Depends(current_user), db: Session = Depends(get_db)):
    """Start a session for an application, or return the one already running."""
    try:
        started = interview.start_session(db, user, data.application_id, data.total_questions)
    except QuotaError as e:
        raise quota_error(e)
    except interview.InterviewNotFoundError as e:
        raise NotFoundError(str(e))
    except interview.ResumeRequiredError as e:
        raise BadRequestError(str(e), code="RESUME_REQUIRED")

    message = "Resumed existing interview session" if started.existing else "Interview session started"
    return envelope(InterviewSessionResponse.model_validate(started.session), message)


@router.post("/next-question", response_model=Envelope[InterviewQuestionResponse])
def next_question(data: NextQuestionRequest, user: User = Depends(current_user), db: Session = Depends(get_db)):
    try:
        question = interview.next_question(db, user, data.session_id)
    except interview.InterviewNotFoundError as e:
        raise NotFoundError(str(e))
    except interview.SessionCompletedError as e:
        raise ConflictError(str(e))
    return envelope(InterviewQuestionResponse.model_validate(question))


@router.post("/submit-answer", response_model=Envelope[SubmitAnswerResponse])
def submit_answer(data: SubmitAnswerRequest, user: User = Depends(current_user), db: Session = Depends(get_db)):
    try:
        result = interview.submit_answer(db, user, data.question_id, data.answer_text)
    except interview.InterviewNotFoundError as e:
        raise NotFoundError(str(e))
    message = "Interview completed" if result["is_completed"] else "Answer saved"
    return envelope(SubmitAnswerResponse(**result), message)


@router.get("/sessions", response_model=Envelope[list[InterviewSessionResponse]])
def list_sessions(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return envelope([InterviewSessionResponse.model_validate(s) for s in interview.list_sessions(db, user.id)])


@router.get("/sessions/{session_id}", response_model=Envelope[InterviewSessionDetail])
def get_session(session_id: str, user: User = Depends(current_user), db: Session = Depends(get_db)):
    try:
        session = interview.get_session(db, user.id, session_id)
    except interview.InterviewNotFoundError as e:
        raise NotFoundError(str(e))
    return envelope(InterviewSessionDetail.model_validate(session))
