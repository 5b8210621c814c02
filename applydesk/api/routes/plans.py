"""Subscription plans and usage."""

from fastapi import APIRouter, Depends

from applydesk.api.deps import current_user
from applydesk.api.schemas import envelope
from applydesk.db import User
from applydesk.services import plans

router = APIRouter()


@router.get("")
def list_plans():
    return envelope(plans.list_plans())


@router.get("/usage")
def usage(user: User = Depends(current_user)):
    return envelope(plans.get_usage_summary(user))
