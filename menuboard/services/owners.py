from __future__ import annotations

from sqlalchemy import func, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from menuboard.models.user import User
from menuboard.services.passwords import hash_password


def ensure_users_table(engine: Engine) -> None:
    if not inspect(engine).has_table("users"):
        raise RuntimeError("Table users not found. Run `alembic upgrade head` first.")


def upsert_owner(
    db: Session,
    *,
    email: str,
    name: str,
    password: str | None,
) -> tuple[User, bool]:
    """Create a shop owner account, or refresh an existing one with the same email."""
    email = email.strip().lower()
    existing = db.query(User).filter(func.lower(User.email) == email).first()
    if existing:
        existing.name = name
        existing.active = True
        if password:
            existing.password_hash = hash_password(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("A password is required to create a new owner.")

    owner = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        active=True,
    )
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner, True
