from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from menuboard.core.database import get_db
from menuboard.deps import get_feed, get_optional_owner, get_pages
from menuboard.models.user import User
from menuboard.routers._common import result_response
from menuboard.schemas.shop import ShopCreate, ThemeConfig
from menuboard.services import seed, shops
from menuboard.services.change_feed import ChangeFeed
from menuboard.services.revalidation import PageCache

router = APIRouter(prefix="/api/admin/shops", tags=["admin-shops"])


@router.get("")
def list_shops(
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
):
    return result_response(shops.list_shops(db, owner))


@router.post("")
def create_shop(
    payload: ShopCreate,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
):
    result = shops.create_shop(db, owner, payload.name, slug=payload.slug, shop_type=payload.type)
    if result.success:
        result.status_code = 201
    return result_response(result)


@router.put("/{shop_id}/theme")
def update_theme(
    shop_id: int,
    payload: ThemeConfig,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    return result_response(shops.update_shop_theme(db, owner, shop_id, payload, pages=pages))


@router.post("/{shop_id}/seed")
def seed_demo_data(
    shop_id: int,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    return result_response(seed.seed_demo_data(db, owner, shop_id, feed=feed, pages=pages))
