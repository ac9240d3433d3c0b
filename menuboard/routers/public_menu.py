from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from menuboard.core.database import get_db
from menuboard.deps import get_pages
from menuboard.routers._common import result_response
from menuboard.services import menu, shops
from menuboard.services.revalidation import PageCache

router = APIRouter(prefix="/public/shops", tags=["public-menu"])


@router.get("/{slug}")
def get_shop(slug: str, db: Session = Depends(get_db)):
    return result_response(shops.get_shop_by_slug(db, slug))


@router.get("/{slug}/menu")
def get_public_menu(
    slug: str,
    q: Optional[str] = Query(None, max_length=120),
    db: Session = Depends(get_db),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.get_public_menu(db, slug, q, pages=pages))
