"""User accounts and password resets."""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from applydesk.db import AutoApplySettings, PasswordResetToken, Profile, User, utcnow
from applydesk.services.plans import TRIAL_HOURS

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000
RESET_TOKEN_HOURS = 1


class DuplicateEmailError(Exception):
    """An account with this email already exists."""


class AccountNotFoundError(LookupError):
    pass


class PasswordNotSetError(ValueError):
    """OAuth-only accounts have no password to reset."""


class InvalidResetTokenError(ValueError):
    pass


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str | None) -> bool:
    if not stored or "$" not in stored:
        return False
    salt, _ = stored.split("$", 1)
    return hmac.compare_digest(hash_password(password, salt), stored)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user(db: Session, email: str, name: str = "", password: str | None = None) -> User:
    """Create an account on a fresh free trial, with an empty profile and default settings."""
    email = normalize_email(email)
    if db.query(User.id).filter(User.email == email).first():
        raise DuplicateEmailError(f"An account with {email} already exists")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password) if password else None,
        subscription_plan="free_trial",
        subscription_status="trialing",
        trial_ends_at=utcnow() + timedelta(hours=TRIAL_HOURS),
    )
    db.add(user)
    db.flush()
    db.add(Profile(user_id=user.id, full_name=name))
    db.add(AutoApplySettings(user_id=user.id))
    db.commit()
    logger.info(f"[{user.id}] Account created")
    return user


def create_reset_token(db: Session, email: str) -> PasswordResetToken:
    """Issue a one-hour reset token, replacing any earlier one for the email."""
    email = normalize_email(email)
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise AccountNotFoundError("No account with that email")
    if not user.password_hash:
        raise PasswordNotSetError("This account signs in with an external provider")

    db.query(PasswordResetToken).filter(PasswordResetToken.email == email).delete(synchronize_session=False)
    token = PasswordResetToken(
        email=email,
        token=secrets.token_hex(32),
        expires_at=utcnow() + timedelta(hours=RESET_TOKEN_HOURS),
    )
    db.add(token)
    db.commit()
    logger.info(f"[{user.id}] Password reset requested")
    return token


def reset_password(db: Session, token: str, password: str) -> User:
    record = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if record is None or record.expires_at < utcnow():
        raise InvalidResetTokenError("Invalid or expired reset token")

    user = db.query(User).filter(User.email == record.email).first()
    if user is None:
        raise InvalidResetTokenError("Invalid or expired reset token")

    user.password_hash = hash_password(password)
    db.delete(record)
    db.commit()
    logger.info(f"[{user.id}] Password reset")
    return user
