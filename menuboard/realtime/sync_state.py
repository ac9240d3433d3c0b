from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import Any, Optional

from menuboard.services.ordering import OrderUpdate, array_move, build_reorder_updates

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    SYNCED = "synced"
    PENDING_WRITE = "pending_write"
    DIVERGED = "diverged"


class OptimisticMenu:
    """Locally held menu builder view, changed before the server confirms.

    A failed reorder does not roll the view back: the state becomes
    ``DIVERGED`` until the next ``refetch``.
    """

    def __init__(self, categories: list[dict]) -> None:
        self._categories = copy.deepcopy(list(categories))
        self.state = SyncState.SYNCED
        self._pending = 0
        self.divergence_reason: Optional[str] = None

    @property
    def categories(self) -> list[dict]:
        return self._categories

    def category_ids(self) -> list[Any]:
        return [category["id"] for category in self._categories]

    def item_ids(self, category_id: Any) -> list[Any]:
        return [item["id"] for item in self._category(category_id)["items"]]

    def _category(self, category_id: Any) -> dict:
        for category in self._categories:
            if category["id"] == category_id:
                return category
        raise KeyError(f"category {category_id} not in view")

    def _item(self, item_id: Any) -> dict:
        for category in self._categories:
            for item in category.get("items", []):
                if item["id"] == item_id:
                    return item
        raise KeyError(f"item {item_id} not in view")

    def _begin_write(self) -> None:
        self._pending += 1
        if self.state is not SyncState.DIVERGED:
            self.state = SyncState.PENDING_WRITE

    def move_category(self, old_index: int, new_index: int) -> list[OrderUpdate]:
        self._categories = array_move(self._categories, old_index, new_index)
        for position, category in enumerate(self._categories):
            category["order_index"] = position
        self._begin_write()
        return build_reorder_updates(self.category_ids())

    def move_item(self, category_id: Any, old_index: int, new_index: int) -> list[OrderUpdate]:
        category = self._category(category_id)
        category["items"] = array_move(category["items"], old_index, new_index)
        for position, item in enumerate(category["items"]):
            item["order_index"] = position
        self._begin_write()
        return build_reorder_updates(self.item_ids(category_id))

    def set_availability(self, item_id: Any, is_available: bool) -> bool:
        item = self._item(item_id)
        previous = bool(item.get("is_available", True))
        item["is_available"] = bool(is_available)
        self._begin_write()
        return previous

    def revert_availability(self, item_id: Any, previous: bool) -> None:
        self._item(item_id)["is_available"] = previous
        self._finish_write()

    def confirm(self) -> None:
        self._finish_write()

    def _finish_write(self) -> None:
        self._pending = max(0, self._pending - 1)
        if self._pending == 0 and self.state is SyncState.PENDING_WRITE:
            self.state = SyncState.SYNCED

    def diverge(self, reason: str) -> None:
        self._pending = max(0, self._pending - 1)
        self.state = SyncState.DIVERGED
        self.divergence_reason = reason
        logger.warning("local menu view diverged from server: %s", reason)

    def refetch(self, categories: list[dict]) -> None:
        self._categories = copy.deepcopy(list(categories))
        self._pending = 0
        self.divergence_reason = None
        self.state = SyncState.SYNCED
