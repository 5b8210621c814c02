"""User account endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applydesk.api.deps import current_user
from applydesk.api.errors import ConflictError
from applydesk.api.schemas import Envelope, UserCreate, UserResponse, envelope
from applydesk.db import User, get_db
from applydesk.services import accounts

router = APIRouter()


@router.post("", response_model=Envelope[UserResponse], status_code=201)
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    """Create an account. New accounts start on the free trial."""
    try:
        user = accounts.create_user(db, data.email, data.name, data.password)
    except accounts.DuplicateEmailError as e:
        raise ConflictError(str(e))
    return envelope(UserResponse.model_validate(user), "Account created")


@router.get("/me", response_model=Envelope[UserResponse])
def get_me(user: User = Depends(current_user)):
    return envelope(UserResponse.model_validate(user))
