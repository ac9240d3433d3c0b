"""Positions of categories within a shop and of items within a category.

New rows are appended after the current last position; a drag-and-drop
reorder rewrites the position of every row in the submitted sequence.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence, TypeVar

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem
from menuboard.services.errors import PartialReorderFailure

logger = logging.getLogger(__name__)
REORDER_PREFIX = "[REORDER]"

T = TypeVar("T")


@dataclass(frozen=True)
class OrderUpdate:
    id: int
    order_index: int

    def as_payload(self) -> dict[str, int]:
        return {"id": self.id, "order_index": self.order_index}


@dataclass
class ReorderOutcome:
    applied: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    atomic: bool = True

    @property
    def partial(self) -> bool:
        return bool(self.failed)

    @property
    def failure(self) -> PartialReorderFailure | None:
        if not self.failed:
            return None
        return PartialReorderFailure(self.failed)


def next_order_index(db: Session, order_column, scope_column, scope_id: int) -> int:
    # Read-then-write: two concurrent inserts in one scope can get the same value.
    current = db.query(func.max(order_column)).filter(scope_column == scope_id).scalar()
    return 0 if current is None else int(current) + 1


def next_category_index(db: Session, shop_id: int) -> int:
    return next_order_index(db, Category.order_index, Category.shop_id, shop_id)


def next_item_index(db: Session, category_id: int) -> int:
    return next_order_index(db, MenuItem.order_index, MenuItem.category_id, category_id)


def array_move(sequence: Sequence[T], old_index: int, new_index: int) -> list[T]:
    moved = list(sequence)
    if not moved:
        return moved
    if not (0 <= old_index < len(moved)) or not (0 <= new_index < len(moved)):
        raise IndexError("position outside of the sequence")
    element = moved.pop(old_index)
    moved.insert(new_index, element)
    return moved


def build_reorder_updates(ids: Iterable[int]) -> list[OrderUpdate]:
    ordered = list(ids)
    if len(set(ordered)) != len(ordered):
        raise ValueError("duplicate id in reorder sequence")
    return [OrderUpdate(id=record_id, order_index=position) for position, record_id in enumerate(ordered)]


def updates_from_payload(entries: Iterable[dict | OrderUpdate]) -> list[OrderUpdate]:
    """Re-derive dense positions from a submitted ``{id, order_index}`` list."""
    normalized = []
    for entry in entries:
        if isinstance(entry, OrderUpdate):
            normalized.append(entry)
        else:
            normalized.append(OrderUpdate(id=int(entry["id"]), order_index=int(entry["order_index"])))
    normalized.sort(key=lambda update_: update_.order_index)
    return build_reorder_updates(update_.id for update_ in normalized)


def _bulk_write(db: Session, model, updates: Sequence[OrderUpdate]) -> None:
    db.execute(update(model), [update_.as_payload() for update_ in updates])
    db.commit()


def _write_row(db: Session, model, update_: OrderUpdate) -> None:
    db.query(model).filter(model.id == update_.id).update(
        {"order_index": update_.order_index},
        synchronize_session=False,
    )
    db.commit()


def persist_reorder(db: Session, model, updates: Sequence[OrderUpdate]) -> ReorderOutcome:
    """Write all positions in one transaction, falling back to one row at a time.

    The fallback is best effort: rows that fail are logged and skipped, rows
    already written stay written.
    """
    if not updates:
        return ReorderOutcome()

    try:
        _bulk_write(db, model, updates)
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "%s bulk write failed table=%s rows=%s; falling back to per-row updates",
            REORDER_PREFIX,
            model.__tablename__,
            len(updates),
            exc_info=True,
        )
    else:
        return ReorderOutcome(applied=[update_.id for update_ in updates], atomic=True)

    outcome = ReorderOutcome(atomic=False)
    for update_ in updates:
        try:
            _write_row(db, model, update_)
        except SQLAlchemyError:
            db.rollback()
            outcome.failed.append(update_.id)
            logger.error(
                "%s row update failed table=%s id=%s order_index=%s",
                REORDER_PREFIX,
                model.__tablename__,
                update_.id,
                update_.order_index,
                exc_info=True,
            )
            continue
        outcome.applied.append(update_.id)

    if outcome.partial:
        logger.error(
            "%s sequence left mixed table=%s applied=%s failed=%s",
            REORDER_PREFIX,
            model.__tablename__,
            outcome.applied,
            outcome.failed,
        )
    return outcome
