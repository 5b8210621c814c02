"""
Subscription plans and usage quotas.

Payment collection lives with the payment processor; this module only
knows which plan a user is on and how much of it they have used.
"""

import logging
from dataclasses import asdict, dataclass, replace
from datetime import timedelta
from typing import Any, Literal

from sqlalchemy import or_
from sqlalchemy.orm import Session

from applydesk.db import User, utcnow

logger = logging.getLogger(__name__)

TRIAL_HOURS = 24
BILLING_PERIOD_DAYS = 30

Feature = Literal["auto_apply", "mock_interviews", "advanced_analytics", "priority_processing"]


@dataclass(frozen=True)
class PlanLimits:
    auto_applications_per_month: int
    mock_interviews_per_month: int
    has_interview_preparation: bool
    has_advanced_analytics: bool = False
    has_priority_processing: bool = False
    has_advanced_optimization: bool = False


@dataclass(frozen=True)
class Plan:
    id: str
    title: str
    price: str | None
    interval: str
    limits: PlanLimits
    is_addon: bool = False


PLANS: dict[str, Plan] = {
    "free_trial": Plan(
        "free_trial",
        "Free Trial",
        None,
        "trial",
        PlanLimits(5, 1, True),
    ),
    "starter": Plan(
        "starter",
        "Starter Plan",
        "$39",
        "month",
        PlanLimits(20, 0, False, has_advanced_analytics=True),
    ),
    "pro": Plan(
        "pro",
        "Pro Plan",
        "$79",
        "month",
        PlanLimits(60, 10, True, has_advanced_analytics=True, has_priority_processing=True),
    ),
    "power": Plan(
        "power",
        "Power Plan",
        "$149",
        "month",
        PlanLimits(
            120,
            20,
            True,
            has_advanced_analytics=True,
            has_priority_processing=True,
            has_advanced_optimization=True,
        ),
    ),
    "interview_addon": Plan(
        "interview_addon",
        "Interview Preparation Add-On",
        "$19",
        "month",
        PlanLimits(0, 5, True),
        is_addon=True,
    ),
}


class QuotaError(Exception):
    """A plan does not allow the requested action."""

    def __init__(self, message: str, code: str = "QUOTA_EXCEEDED"):
        super().__init__(message)
        self.code = code


@dataclass
class QuotaCheck:
    allowed: bool
    remaining: int
    limit: int
    reason: str | None = None
    code: str | None = None


def get_plan_limits(plan_id: str, has_addon: bool = False) -> PlanLimits:
    """Limits for a plan; unknown plans get the free trial's."""
    plan = PLANS.get(plan_id)
    if plan is None or plan.is_addon:
        return PLANS["free_trial"].limits

    limits = plan.limits
    if has_addon and not limits.has_interview_preparation:
        addon = PLANS["interview_addon"].limits
        limits = replace(
            limits,
            mock_interviews_per_month=addon.mock_interviews_per_month,
            has_interview_preparation=True,
        )
    return limits


def list_plans() -> list[dict[str, Any]]:
    return [asdict(plan) for plan in PLANS.values()]


def is_trial_active(user: User) -> bool:
    return user.trial_ends_at is not None and utcnow() < user.trial_ends_at


def has_active_subscription(user: User) -> bool:
    if user.subscription_status == "active":
        return True
    return user.subscription_status == "trialing" and is_trial_active(user)


def check_auto_application_quota(user: User) -> QuotaCheck:
    if not has_active_subscription(user):
        return QuotaCheck(False, 0, 0, "No active subscription", "SUBSCRIPTION_REQUIRED")

    limit = get_plan_limits(user.subscription_plan, user.has_interview_addon).auto_applications_per_month
    remaining = max(0, limit - (user.auto_applications_used or 0))
    if remaining == 0:
        return QuotaCheck(False, 0, limit, "Monthly auto application limit exceeded", "QUOTA_EXCEEDED")
    return QuotaCheck(True, remaining, limit)


def check_mock_interview_quota(user: User) -> QuotaCheck:
    if not has_active_subscription(user):
        return QuotaCheck(False, 0, 0, "No active subscription", "SUBSCRIPTION_REQUIRED")

    limits = get_plan_limits(user.subscription_plan, user.has_interview_addon)
    if not limits.has_interview_preparation:
        return QuotaCheck(
            False, 0, 0, "Interview preparation not included in your plan", "FEATURE_NOT_AVAILABLE"
        )

    limit = limits.mock_interviews_per_month
    remaining = max(0, limit - (user.mock_interviews_used or 0))
    if remaining == 0:
        return QuotaCheck(False, 0, limit, "Monthly mock interview limit exceeded", "QUOTA_EXCEEDED")
    return QuotaCheck(True, remaining, limit)


def _require(check: QuotaCheck) -> None:
    if not check.allowed:
        raise QuotaError(check.reason or "Quota exceeded", check.code or "QUOTA_EXCEEDED")


def require_auto_application_quota(user: User) -> QuotaCheck:
    check = check_auto_application_quota(user)
    _require(check)
    return check


def require_mock_interview_quota(user: User) -> QuotaCheck:
    check = check_mock_interview_quota(user)
    _require(check)
    return check


def consume_auto_application(db: Session, user: User, commit: bool = True) -> int:
    """Count one auto application. Returns what is left afterwards."""
    check = require_auto_application_quota(user)
    user.auto_applications_used = (user.auto_applications_used or 0) + 1
    if commit:
        db.commit()
    logger.info(f"[{user.id}] Auto application used ({user.auto_applications_used}/{check.limit})")
    return check.remaining - 1


def consume_mock_interview(db: Session, user: User, commit: bool = True) -> int:
    """Count one mock interview. Returns what is left afterwards."""
    check = require_mock_interview_quota(user)
    user.mock_interviews_used = (user.mock_interviews_used or 0) + 1
    if commit:
        db.commit()
    logger.info(f"[{user.id}] Mock interview used ({user.mock_interviews_used}/{check.limit})")
    return check.remaining - 1


def update_user_plan(
    db: Session,
    user: User,
    plan_id: str,
    *,
    status: str | None = None,
    has_addon: bool | None = None,
) -> User:
    """Move a user to a plan and reset their usage."""
    if plan_id not in PLANS or PLANS[plan_id].is_addon:
        raise ValueError(f"Unknown plan: {plan_id}")

    now = utcnow()
    user.subscription_plan = plan_id
    if has_addon is not None:
        user.has_interview_addon = has_addon
    if plan_id == "free_trial":
        user.trial_ends_at = now + timedelta(hours=TRIAL_HOURS)
        user.subscription_status = status or "trialing"
    else:
        user.trial_ends_at = None
        user.subscription_status = status or "active"
    user.auto_applications_used = 0
    user.mock_interviews_used = 0
    user.usage_reset_at = now
    db.commit()
    logger.info(f"[{user.id}] Plan set to {plan_id} ({user.subscription_status})")
    return user


def reset_usage_counters(db: Session, user: User, commit: bool = True) -> None:
    user.auto_applications_used = 0
    user.mock_interviews_used = 0
    user.usage_reset_at = utcnow()
    if commit:
        db.commit()


def reset_due_usage(db: Session, period_days: int = BILLING_PERIOD_DAYS) -> int:
    """Start a new usage period for every user whose current one has run out."""
    cutoff = utcnow() - timedelta(days=period_days)
    users = db.query(User).filter(or_(User.usage_reset_at.is_(None), User.usage_reset_at <= cutoff)).all()
    for user in users:
        reset_usage_counters(db, user, commit=False)
    db.commit()
    logger.info(f"Reset monthly usage for {len(users)} users")
    return len(users)


def extend_trial(db: Session, user: User, hours: int = 24) -> bool:
    """Push the trial end back (referral reward). Only trial users qualify."""
    if user.subscription_plan != "free_trial":
        return False
    base = user.trial_ends_at or utcnow()
    user.trial_ends_at = base + timedelta(hours=hours)
    db.commit()
    return True


def check_feature_access(user: User, feature: Feature) -> bool:
    if not has_active_subscription(user):
        return False
    limits = get_plan_limits(user.subscription_plan, user.has_interview_addon)
    if feature == "auto_apply":
        return limits.auto_applications_per_month > 0
    if feature == "mock_interviews":
        return limits.has_interview_preparation
    if feature == "advanced_analytics":
        return limits.has_advanced_analytics
    if feature == "priority_processing":
        return limits.has_priority_processing
    return False


def _quota(used: int, limit: int) -> dict[str, int]:
    remaining = max(0, limit - used)
    return {
        "used": used,
        "limit": limit,
        "remaining": remaining,
        "percentage": round(used / limit * 100) if limit > 0 else 0,
    }


def get_usage_summary(user: User) -> dict[str, Any]:
    limits = get_plan_limits(user.subscription_plan, user.has_interview_addon)
    return {
        "plan": user.subscription_plan,
        "status": user.subscription_status,
        "has_interview_addon": user.has_interview_addon,
        "trial_ends_at": user.trial_ends_at,
        "is_trial_active": is_trial_active(user),
        "has_active_subscription": has_active_subscription(user),
        "auto_applications": _quota(user.auto_applications_used or 0, limits.auto_applications_per_month),
        "mock_interviews": _quota(user.mock_interviews_used or 0, limits.mock_interviews_per_month),
        "features": asdict(limits),
    }
