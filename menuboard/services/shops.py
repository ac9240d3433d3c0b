from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from menuboard.core.database import commit_or_rollback
from menuboard.models.shop import SHOP_TYPES, Shop
from menuboard.models.user import User
from menuboard.schemas.shop import ThemeConfig, resolve_theme
from menuboard.services.errors import (
    NotAuthenticated,
    NotFound,
    SlugConflict,
    ValidationFailure,
    action_boundary,
)
from menuboard.services.revalidation import PageCache
from menuboard.utils.slug import normalize_slug, random_slug

logger = logging.getLogger(__name__)


def shop_to_dict(shop: Shop) -> dict:
    return {
        "id": shop.id,
        "owner_id": shop.owner_id,
        "name": shop.name,
        "slug": shop.slug,
        "type": shop.type,
        "theme_config": resolve_theme(shop.theme_config),
        "created_at": shop.created_at.isoformat() if shop.created_at else None,
    }


def require_owner(owner: Optional[User]) -> User:
    if owner is None:
        raise NotAuthenticated()
    return owner


def get_owned_shop(db: Session, owner: Optional[User], shop_id: int) -> Shop:
    owner = require_owner(owner)
    shop = db.query(Shop).filter(Shop.id == shop_id, Shop.owner_id == owner.id).first()
    if not shop:
        raise NotFound("Shop not found")
    return shop


@action_boundary
def list_shops(db: Session, owner: Optional[User]) -> list[dict]:
    owner = require_owner(owner)
    shops = (
        db.query(Shop)
        .filter(Shop.owner_id == owner.id)
        .order_by(Shop.created_at.desc(), Shop.id.desc())
        .all()
    )
    return [shop_to_dict(shop) for shop in shops]


@action_boundary
def create_shop(
    db: Session,
    owner: Optional[User],
    name: str,
    slug: Optional[str] = None,
    shop_type: str = "restaurant",
) -> dict:
    owner = require_owner(owner)
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("Missing required fields")
    if shop_type not in SHOP_TYPES:
        raise ValidationFailure("Unknown shop type")

    explicit_slug = normalize_slug(slug or "")
    if slug and not explicit_slug:
        raise ValidationFailure("Invalid slug")

    shop = Shop(
        owner_id=owner.id,
        name=name,
        type=shop_type,
        slug=explicit_slug or random_slug(),
    )
    db.add(shop)
    try:
        commit_or_rollback(db)
    except IntegrityError as exc:
        logger.warning("shop slug collision slug=%s explicit=%s", shop.slug, bool(explicit_slug))
        if explicit_slug:
            raise SlugConflict("Slug already taken") from exc
        raise SlugConflict() from exc

    db.refresh(shop)
    logger.info("shop created shop_id=%s slug=%s", shop.id, shop.slug)
    return shop_to_dict(shop)


@action_boundary
def update_shop_theme(
    db: Session,
    owner: Optional[User],
    shop_id: int,
    theme: ThemeConfig,
    *,
    pages: Optional[PageCache] = None,
) -> dict:
    shop = get_owned_shop(db, owner, shop_id)
    shop.theme_config = {**(shop.theme_config or {}), **theme.model_dump(exclude_none=True)}
    commit_or_rollback(db)
    db.refresh(shop)
    if pages is not None:
        pages.revalidate_shop(shop)
    return shop_to_dict(shop)


@action_boundary
def get_shop_by_slug(db: Session, slug: str) -> dict:
    shop = db.query(Shop).filter(Shop.slug == (slug or "").strip().lower()).first()
    if not shop:
        raise NotFound("Shop not found")
    return shop_to_dict(shop)
