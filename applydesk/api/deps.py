"""Shared route dependencies."""

import secrets

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from applydesk.api.errors import QuotaExceededError, UnauthorizedError
from applydesk.config import settings
from applydesk.db import User, get_db
from applydesk.services.plans import QuotaError


def current_user(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    db: Session = Depends(get_db),
) -> User:
    """The caller, as identified by the upstream auth layer."""
    if not x_user_id:
        raise UnauthorizedError("Missing X-User-ID header")
    user = db.get(User, x_user_id)
    if user is None:
        raise UnauthorizedError("Unknown user")
    return user


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    if not settings.cron_secret:
        raise UnauthorizedError("Cron endpoints are disabled")
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not secrets.compare_digest(authorization.encode(), expected.encode()):
        raise UnauthorizedError("Invalid cron secret")


def quota_error(error: QuotaError) -> QuotaExceededError:
    return QuotaExceededError(str(error), code=error.code)
