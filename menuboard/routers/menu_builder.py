from __future__ import annotations

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from menuboard.core.database import get_db
from menuboard.deps import get_feed, get_optional_owner, get_pages
from menuboard.models.user import User
from menuboard.routers._common import result_response
from menuboard.schemas.menu import AvailabilityUpdate, CategoryCreate, CategoryUpdate, ItemFields, ReorderEntry
from menuboard.services import menu
from menuboard.services.change_feed import ChangeFeed
from menuboard.services.errors import ActionResult, ValidationFailure
from menuboard.services.revalidation import PageCache

router = APIRouter(prefix="/api/admin", tags=["menu-builder"])


def _item_fields(
    name: Optional[str],
    description: Optional[str],
    price: Optional[float],
    icon: Optional[str],
    category_id: Optional[int],
    metadata: Optional[str],
) -> ItemFields:
    parsed_metadata = None
    if metadata:
        try:
            parsed_metadata = json.loads(metadata)
        except json.JSONDecodeError as exc:
            raise ValidationFailure("metadata must be a JSON object") from exc
    try:
        return ItemFields(
            name=name,
            description=description,
            price=price,
            icon=icon,
            category_id=category_id,
            metadata=parsed_metadata,
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationFailure(f"{field}: {first.get('msg')}") from exc


def _image_or_none(image: UploadFile | None) -> UploadFile | None:
    if image is None or not image.filename:
        return None
    return image


@router.get("/shops/{shop_id}/menu")
def get_menu(
    shop_id: int,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.get_menu(db, owner, shop_id, pages=pages))


@router.post("/shops/{shop_id}/categories")
def create_category(
    shop_id: int,
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    result = menu.create_category(db, owner, shop_id, payload.name, payload.icon, pages=pages)
    if result.success:
        result.status_code = 201
    return result_response(result)


@router.put("/shops/{shop_id}/categories/order")
def reorder_categories(
    shop_id: int,
    payload: List[ReorderEntry],
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.reorder_categories(db, owner, shop_id, payload, pages=pages))


@router.put("/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    return result_response(
        menu.update_category(db, owner, category_id, payload.name, payload.icon, pages=pages)
    )


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.delete_category(db, owner, category_id, pages=pages))


@router.post("/categories/{category_id}/items")
def create_item(
    category_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    icon: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    try:
        fields = _item_fields(name, description, price, icon, None, metadata)
    except ValidationFailure as exc:
        return result_response(ActionResult.fail(exc))

    result = menu.create_item(
        db, owner, category_id, fields, _image_or_none(image), feed=feed, pages=pages
    )
    if result.success:
        result.status_code = 201
    return result_response(result)


@router.put("/categories/{category_id}/items/order")
def reorder_items(
    category_id: int,
    payload: List[ReorderEntry],
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.reorder_items(db, owner, category_id, payload, feed=feed, pages=pages))


@router.put("/items/{item_id}")
def update_item(
    item_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    icon: Optional[str] = Form(None),
    category_id: Optional[int] = Form(None),
    metadata: Optional[str] = Form(None),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    try:
        fields = _item_fields(name, description, price, icon, category_id, metadata)
    except ValidationFailure as exc:
        return result_response(ActionResult.fail(exc))

    return result_response(
        menu.update_item(db, owner, item_id, fields, _image_or_none(image), feed=feed, pages=pages)
    )


@router.patch("/items/{item_id}/availability")
def set_availability(
    item_id: int,
    payload: AvailabilityUpdate,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    return result_response(
        menu.set_item_availability(db, owner, item_id, payload.is_available, feed=feed, pages=pages)
    )


@router.delete("/items/{item_id}")
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    owner: Optional[User] = Depends(get_optional_owner),
    feed: ChangeFeed = Depends(get_feed),
    pages: PageCache = Depends(get_pages),
):
    return result_response(menu.delete_item(db, owner, item_id, feed=feed, pages=pages))
