"""Password reset endpoints. Sign-in itself happens upstream."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applydesk.api.errors import BadRequestError, NotFoundError
from applydesk.api.schemas import Envelope, ForgotPasswordRequest, MessageResponse, ResetPasswordRequest, envelope
from applydesk.db import get_db
from applydesk.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/forgot-password", response_model=Envelope[MessageResponse])
def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Issue a reset token. Delivering it by email is up to the mail integration."""
    try:
        token = accounts.create_reset_token(db, data.email)
    except accounts.AccountNotFoundError as e:
        raise NotFoundError(str(e))
    except accounts.PasswordNotSetError as e:
        raise BadRequestError(str(e), code="OAUTH_ACCOUNT")
    logger.info(f"[{token.id}] Reset token issued, expires {token.expires_at.isoformat()}")
    return envelope(MessageResponse(message="Password reset instructions sent"))


@router.post("/reset-password", response_model=Envelope[MessageResponse])
def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        accounts.reset_password(db, data.token, data.password)
    except accounts.InvalidResetTokenError as e:
        raise BadRequestError(str(e), code="INVALID_TOKEN")
    return envelope(MessageResponse(message="Password updated"))
