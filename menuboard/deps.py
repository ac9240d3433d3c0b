# menuboard/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from menuboard.core.database import get_db
from menuboard.core.request_context import bind_request_context
from menuboard.models.user import User
from menuboard.services.change_feed import ChangeFeed, get_change_feed
from menuboard.services.revalidation import PageCache, get_page_cache
from menuboard.services.session_auth import SESSION_COOKIE, decode_session

logger = logging.getLogger(__name__)


def get_optional_owner(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Owner behind the session cookie, or None.

    Operations decide what a missing identity means; they report it as
    "Not authenticated" rather than this dependency raising.
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None

    payload = decode_session(token)
    if not payload:
        logger.info("session cookie rejected")
        return None

    user_id = payload.get("user_id")
    if not user_id:
        return None

    user = db.query(User).filter(User.id == int(user_id), User.active.is_(True)).first()
    if user is None:
        return None

    request.state.user = user
    bind_request_context(user_id=str(user.id))
    return user


def get_feed(request: Request) -> ChangeFeed:
    return get_change_feed(request.app)


def get_pages(request: Request) -> PageCache:
    return get_page_cache(request.app)
