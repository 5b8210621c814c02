from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from applydesk.db import AutoApplySettings, PasswordResetToken, Profile, utcnow
from applydesk.services import accounts

pytestmark = pytest.mark.integration


@pytest.mark.unit
def test_password_hashes_are_salted_and_verifiable() -> None:
    first = accounts.hash_password("s3cret-pass")
    second = accounts.hash_password("s3cret-pass")

    assert first != second
    assert accounts.verify_password("s3cret-pass", first)
    assert not accounts.verify_password("wrong-pass", first)
    assert not accounts.verify_password("s3cret-pass", None)


def test_create_user_sets_up_profile_and_settings(db: Session) -> None:
    user = accounts.create_user(db, "  Grace@Example.com ", "Grace", "hopper-123")

    assert user.email == "grace@example.com"
    assert db.query(Profile).filter(Profile.user_id == user.id).one().full_name == "Grace"
    assert db.query(AutoApplySettings).filter(AutoApplySettings.user_id == user.id).count() == 1
    assert user.trial_ends_at > utcnow() + timedelta(hours=23)

    with pytest.raises(accounts.DuplicateEmailError):
        accounts.create_user(db, "grace@example.com")


def test_reset_token_replaces_earlier_tokens_and_is_single_use(db: Session, make_user) -> None:
    user = make_user(email="ada@example.com")
    first = accounts.create_reset_token(db, "ADA@example.com").token
    second = accounts.create_reset_token(db, "ada@example.com").token

    assert db.query(PasswordResetToken).count() == 1
    with pytest.raises(accounts.InvalidResetTokenError):
        accounts.reset_password(db, first, "new-password")

    accounts.reset_password(db, second, "new-password")
    assert accounts.verify_password("new-password", user.password_hash)
    with pytest.raises(accounts.InvalidResetTokenError):
        accounts.reset_password(db, second, "another-password")


def test_expired_reset_token_is_rejected(db: Session, make_user) -> None:
    make_user(email="ada@example.com")
    record = accounts.create_reset_token(db, "ada@example.com")
    record.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(accounts.InvalidResetTokenError):
        accounts.reset_password(db, record.token, "new-password")


def test_reset_requires_known_password_account(db: Session, make_user) -> None:
    make_user(email="oauth@example.com", password=None)

    with pytest.raises(accounts.AccountNotFoundError):
        accounts.create_reset_token(db, "nobody@example.com")
    with pytest.raises(accounts.PasswordNotSetError):
        accounts.create_reset_token(db, "oauth@example.com")
