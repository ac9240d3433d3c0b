from __future__ import annotations

import logging
from typing import Iterable, Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from menuboard.core.database import commit_or_rollback
from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem
from menuboard.models.shop import Shop
from menuboard.models.user import User
from menuboard.schemas.menu import ItemFields, ReorderEntry
from menuboard.services import ordering, storage
from menuboard.services.change_feed import ChangeEvent, ChangeFeed
from menuboard.services.errors import (
    ActionResult,
    ForeignKeyViolation,
    NotFound,
    PersistenceFailure,
    ValidationFailure,
    action_boundary,
)
from menuboard.services.revalidation import PageCache, menu_builder_path, public_shop_path
from menuboard.services.shops import get_owned_shop, require_owner, shop_to_dict

logger = logging.getLogger(__name__)


def menu_item_to_dict(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "category_id": item.category_id,
        "name": item.name,
        "description": item.description,
        "price": float(item.price) if item.price is not None else None,
        "image_url": item.image_url,
        "icon": item.icon,
        "is_available": bool(item.is_available),
        "order_index": item.order_index,
        "metadata": item.extra_metadata,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


def category_to_dict(category: Category, *, with_items: bool = False) -> dict:
    payload = {
        "id": category.id,
        "shop_id": category.shop_id,
        "name": category.name,
        "icon": category.icon,
        "order_index": category.order_index,
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }
    if with_items:
        payload["items"] = [menu_item_to_dict(item) for item in category.items]
    return payload


def _get_owned_category(db: Session, owner: Optional[User], category_id: int) -> tuple[Category, Shop]:
    owner = require_owner(owner)
    row = (
        db.query(Category, Shop)
        .join(Shop, Shop.id == Category.shop_id)
        .filter(Category.id == category_id, Shop.owner_id == owner.id)
        .first()
    )
    if not row:
        raise NotFound("Category not found")
    return row[0], row[1]


def _get_owned_item(db: Session, owner: Optional[User], item_id: int) -> tuple[MenuItem, Shop]:
    owner = require_owner(owner)
    row = (
        db.query(MenuItem, Shop)
        .join(Category, Category.id == MenuItem.category_id)
        .join(Shop, Shop.id == Category.shop_id)
        .filter(MenuItem.id == item_id, Shop.owner_id == owner.id)
        .first()
    )
    if not row:
        raise NotFound("Item not found")
    return row[0], row[1]


def _load_menu(db: Session, shop_id: int) -> list[dict]:
    categories = (
        db.query(Category)
        .options(selectinload(Category.items))
        .filter(Category.shop_id == shop_id)
        .order_by(Category.order_index.asc(), Category.id.asc())
        .all()
    )
    return [category_to_dict(category, with_items=True) for category in categories]


def _after_change(shop: Shop, pages: Optional[PageCache]) -> None:
    if pages is not None:
        pages.revalidate_shop(shop)


def _publish(feed: Optional[ChangeFeed], events: Iterable[ChangeEvent]) -> None:
    if feed is not None:
        feed.publish_all(list(events))


def _reorder_updates(entries: Iterable[ReorderEntry | dict]) -> list[ordering.OrderUpdate]:
    payload = [entry.model_dump() if isinstance(entry, ReorderEntry) else entry for entry in entries]
    try:
        return ordering.updates_from_payload(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailure(f"Invalid reorder payload: {exc}") from exc


def _check_full_sequence(ids: list[int], scope_ids: set[int], label: str) -> None:
    """A reorder must name every row of its scope exactly once."""
    if set(ids) - scope_ids:
        raise NotFound(f"{label} not found")
    missing = scope_ids - set(ids)
    if missing:
        raise ValidationFailure(f"Reorder must include every {label.lower()} in order; missing {sorted(missing)}")


def _reorder_result(outcome: ordering.ReorderOutcome, updates: list[ordering.OrderUpdate]) -> ActionResult:
    if outcome.failed and not outcome.applied:
        raise PersistenceFailure("Failed to save new order. Please refresh and try again.")
    failure = outcome.failure
    return ActionResult.ok(
        [update.as_payload() for update in updates],
        partial=outcome.partial,
        failed_ids=failure.failed_ids if failure else [],
    )


# Shop menu (admin)


@action_boundary
def get_menu(db: Session, owner: Optional[User], shop_id: int, *, pages: Optional[PageCache] = None) -> list[dict]:
    shop = get_owned_shop(db, owner, shop_id)
    if pages is None:
        return _load_menu(db, shop.id)
    return pages.get_or_render(menu_builder_path(shop.id), lambda: _load_menu(db, shop.id))


@action_boundary
def create_category(
    db: Session,
    owner: Optional[User],
    shop_id: int,
    name: str,
    icon: Optional[str] = None,
    *,
    pages: Optional[PageCache] = None,
) -> dict:
    shop = get_owned_shop(db, owner, shop_id)
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("Category name is required")

    category = Category(
        shop_id=shop.id,
        name=name,
        icon=icon,
        order_index=ordering.next_category_index(db, shop.id),
    )
    db.add(category)
    commit_or_rollback(db)
    db.refresh(category)
    _after_change(shop, pages)
    return category_to_dict(category)


@action_boundary
def update_category(
    db: Session,
    owner: Optional[User],
    category_id: int,
    name: Optional[str] = None,
    icon: Optional[str] = None,
    *,
    pages: Optional[PageCache] = None,
) -> dict:
    category, shop = _get_owned_category(db, owner, category_id)
    if name is not None:
        if not name.strip():
            raise ValidationFailure("Category name is required")
        category.name = name.strip()
    if icon is not None:
        category.icon = icon or None

    commit_or_rollback(db)
    db.refresh(category)
    _after_change(shop, pages)
    return category_to_dict(category)


@action_boundary
def delete_category(
    db: Session,
    owner: Optional[User],
    category_id: int,
    *,
    pages: Optional[PageCache] = None,
) -> dict:
    category, shop = _get_owned_category(db, owner, category_id)
    deleted = category_to_dict(category)

    db.delete(category)
    try:
        commit_or_rollback(db)
    except IntegrityError as exc:
        logger.info("category delete rejected, still has items category_id=%s", category_id)
        raise ForeignKeyViolation() from exc

    _after_change(shop, pages)
    return deleted


@action_boundary
def reorder_categories(
    db: Session,
    owner: Optional[User],
    shop_id: int,
    entries: Iterable[ReorderEntry | dict],
    *,
    pages: Optional[PageCache] = None,
) -> ActionResult:
    shop = get_owned_shop(db, owner, shop_id)
    updates = _reorder_updates(entries)
    ids = [update.id for update in updates]

    scope_ids = {row.id for row in db.query(Category.id).filter(Category.shop_id == shop.id).all()}
    _check_full_sequence(ids, scope_ids, "Category")

    outcome = ordering.persist_reorder(db, Category, updates)
    _after_change(shop, pages)
    return _reorder_result(outcome, updates)


# Items


@action_boundary
def create_item(
    db: Session,
    owner: Optional[User],
    category_id: int,
    fields: ItemFields,
    image: Optional[UploadFile] = None,
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> dict:
    category, shop = _get_owned_category(db, owner, category_id)

    image_url = storage.upload_image(image, shop.id) if image is not None else None
    item = MenuItem(
        category_id=category.id,
        name=(fields.name or "").strip() or "New Item",
        description=fields.description,
        price=fields.price if fields.price is not None else 0,
        image_url=image_url,
        icon=fields.icon,
        is_available=True,
        order_index=ordering.next_item_index(db, category.id),
        extra_metadata=fields.metadata,
    )
    db.add(item)
    commit_or_rollback(db)
    db.refresh(item)

    row = menu_item_to_dict(item)
    _publish(feed, [ChangeEvent.created(row)])
    _after_change(shop, pages)
    return row


@action_boundary
def update_item(
    db: Session,
    owner: Optional[User],
    item_id: int,
    fields: ItemFields,
    image: Optional[UploadFile] = None,
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> dict:
    item, shop = _get_owned_item(db, owner, item_id)

    if fields.category_id is not None and fields.category_id != item.category_id:
        target, target_shop = _get_owned_category(db, owner, fields.category_id)
        if target_shop.id != shop.id:
            raise NotFound("Category not found")
        item.category_id = target.id
        item.order_index = ordering.next_item_index(db, target.id)

    if fields.name is not None:
        item.name = fields.name.strip() or item.name
    if fields.description is not None:
        item.description = fields.description
    if fields.price is not None:
        item.price = fields.price
    if fields.icon is not None:
        item.icon = fields.icon or None
    if fields.metadata is not None:
        item.extra_metadata = fields.metadata
    if image is not None:
        item.image_url = storage.upload_image(image, shop.id)

    commit_or_rollback(db)
    db.refresh(item)

    row = menu_item_to_dict(item)
    _publish(feed, [ChangeEvent.updated(row)])
    _after_change(shop, pages)
    return row


@action_boundary
def set_item_availability(
    db: Session,
    owner: Optional[User],
    item_id: int,
    is_available: bool,
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> dict:
    item, shop = _get_owned_item(db, owner, item_id)
    item.is_available = bool(is_available)
    commit_or_rollback(db)
    db.refresh(item)

    row = menu_item_to_dict(item)
    _publish(feed, [ChangeEvent.updated(row)])
    _after_change(shop, pages)
    return row


@action_boundary
def delete_item(
    db: Session,
    owner: Optional[User],
    item_id: int,
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> dict:
    item, shop = _get_owned_item(db, owner, item_id)
    deleted = menu_item_to_dict(item)

    db.delete(item)
    commit_or_rollback(db)

    _publish(feed, [ChangeEvent.deleted(deleted["id"])])
    _after_change(shop, pages)
    return deleted


@action_boundary
def reorder_items(
    db: Session,
    owner: Optional[User],
    category_id: int,
    entries: Iterable[ReorderEntry | dict],
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> ActionResult:
    category, shop = _get_owned_category(db, owner, category_id)
    updates = _reorder_updates(entries)
    ids = [update.id for update in updates]

    scope_ids = {row.id for row in db.query(MenuItem.id).filter(MenuItem.category_id == category.id).all()}
    _check_full_sequence(ids, scope_ids, "Item")

    outcome = ordering.persist_reorder(db, MenuItem, updates)
    if outcome.applied:
        written = (
            db.query(MenuItem)
            .filter(MenuItem.id.in_(outcome.applied))
            .order_by(MenuItem.order_index.asc(), MenuItem.id.asc())
            .all()
        )
        _publish(feed, (ChangeEvent.updated(menu_item_to_dict(item)) for item in written))
    _after_change(shop, pages)
    return _reorder_result(outcome, updates)


# Customer view


def _build_public_menu(db: Session, shop: Shop) -> dict:
    return {"shop": shop_to_dict(shop), "categories": _load_menu(db, shop.id)}


def _matches(item: dict, query: str) -> bool:
    if query in (item.get("name") or "").lower():
        return True
    return query in (item.get("description") or "").lower()


def filter_menu(categories: list[dict], query: Optional[str]) -> list[dict]:
    needle = (query or "").strip().lower()
    filtered = []
    for category in categories:
        items = [item for item in category["items"] if _matches(item, needle)]
        if items:
            filtered.append({**category, "items": items})
    return filtered


@action_boundary
def get_public_menu(
    db: Session,
    slug: str,
    query: Optional[str] = None,
    *,
    pages: Optional[PageCache] = None,
) -> dict:
    """Menu of a shop as customers see it.

    Unavailable items are kept so the page can grey them out; categories left
    without items are dropped.
    """
    shop = db.query(Shop).filter(Shop.slug == (slug or "").strip().lower()).first()
    if not shop:
        raise NotFound("Shop not found")

    if pages is None:
        page = _build_public_menu(db, shop)
    else:
        page = pages.get_or_render(public_shop_path(shop.slug), lambda: _build_public_menu(db, shop))
    return {"shop": page["shop"], "categories": filter_menu(page["categories"], query)}
