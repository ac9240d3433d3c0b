from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from menuboard.core.database import get_db
from menuboard.deps import get_optional_owner
from menuboard.models.user import User
from menuboard.services.passwords import verify_password
from menuboard.services.session_auth import clear_session_cookie, create_session, set_session_cookie

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class OwnerRead(BaseModel):
    id: int
    email: EmailStr
    name: str


def _owner_read(user: User) -> OwnerRead:
    return OwnerRead(id=user.id, email=user.email, name=user.name or "")


@router.post("/login", response_model=OwnerRead)
def login(payload: LoginPayload, response: Response, db: Session = Depends(get_db)):
    normalized_email = payload.email.strip().lower()
    user = (
        db.query(User)
        .filter(func.lower(User.email) == normalized_email, User.active.is_(True))
        .first()
    )
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning("login failed email=%s", normalized_email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    set_session_cookie(response, create_session(user.id))
    logger.info("login ok user_id=%s", user.id)
    return _owner_read(user)


@router.post("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"ok": True}


@router.get("/me", response_model=OwnerRead)
def me(owner: Optional[User] = Depends(get_optional_owner)):
    if owner is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return _owner_read(owner)
