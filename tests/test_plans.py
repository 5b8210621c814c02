from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from applydesk.db import utcnow
from applydesk.services import plans

pytestmark = pytest.mark.integration


def test_new_accounts_start_on_an_active_trial(make_user) -> None:
    user = make_user()
    assert user.subscription_plan == "free_trial"
    assert plans.is_trial_active(user)
    assert plans.has_active_subscription(user)
    assert plans.check_auto_application_quota(user).remaining == 5


def test_expired_trial_has_no_subscription(make_user) -> None:
    user = make_user(trial_ends_at=utcnow() - timedelta(minutes=1))

    check = plans.check_auto_application_quota(user)
    assert not check.allowed
    assert check.code == "SUBSCRIPTION_REQUIRED"
    with pytest.raises(plans.QuotaError) as excinfo:
        plans.require_mock_interview_quota(user)
    assert excinfo.value.code == "SUBSCRIPTION_REQUIRED"


def test_canceled_account_loses_access_despite_trial_time(make_user) -> None:
    user = make_user(subscription_status="canceled")

    assert plans.is_trial_active(user)
    assert not plans.has_active_subscription(user)
    assert plans.check_auto_application_quota(user).code == "SUBSCRIPTION_REQUIRED"


def test_consuming_counts_down_to_quota_exceeded(db: Session, make_user) -> None:
    user = make_user(auto_applications_used=4)

    assert plans.consume_auto_application(db, user) == 0
    assert user.auto_applications_used == 5
    with pytest.raises(plans.QuotaError) as excinfo:
        plans.consume_auto_application(db, user)
    assert excinfo.value.code == "QUOTA_EXCEEDED"
    assert user.auto_applications_used == 5


def test_starter_plan_needs_addon_for_interviews(db: Session, make_user) -> None:
    user = make_user()
    plans.update_user_plan(db, user, "starter")

    assert user.subscription_status == "active"
    assert user.trial_ends_at is None
    assert plans.check_mock_interview_quota(user).code == "FEATURE_NOT_AVAILABLE"
    assert not plans.check_feature_access(user, "mock_interviews")
    assert plans.check_feature_access(user, "advanced_analytics")

    user.has_interview_addon = True
    check = plans.check_mock_interview_quota(user)
    assert check.allowed and check.limit == 5


def test_plan_change_resets_usage_and_rejects_addon_as_plan(db: Session, make_user) -> None:
    user = make_user(auto_applications_used=3, mock_interviews_used=1)
    plans.update_user_plan(db, user, "pro", has_addon=False)
    assert (user.auto_applications_used, user.mock_interviews_used) == (0, 0)

    with pytest.raises(ValueError):
        plans.update_user_plan(db, user, "interview_addon")
    with pytest.raises(ValueError):
        plans.update_user_plan(db, user, "enterprise")


def test_unknown_plan_falls_back_to_trial_limits() -> None:
    assert plans.get_plan_limits("legacy") == plans.PLANS["free_trial"].limits


def test_extend_trial_only_for_trial_users(db: Session, make_user) -> None:
    user = make_user()
    before = user.trial_ends_at
    assert plans.extend_trial(db, user, hours=48)
    assert user.trial_ends_at == before + timedelta(hours=48)

    plans.update_user_plan(db, user, "power")
    assert not plans.extend_trial(db, user)


def test_usage_summary(make_user) -> None:
    user = make_user(auto_applications_used=2)
    summary = plans.get_usage_summary(user)

    assert summary["plan"] == "free_trial"
    assert summary["auto_applications"] == {"used": 2, "limit": 5, "remaining": 3, "percentage": 40}
    assert summary["mock_interviews"]["limit"] == 1
    assert summary["features"]["has_interview_preparation"] is True
