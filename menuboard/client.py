"""HTTP client for the menu builder: optimistic local edits backed by the admin API."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from menuboard.realtime.sync_state import OptimisticMenu
from menuboard.services.ordering import OrderUpdate

logger = logging.getLogger(__name__)


class MenuClientError(RuntimeError):
    pass


class MenuBuilderClient:
    """Drives an ``OptimisticMenu`` for one shop through the admin endpoints.

    ``http`` must already carry the owner's session cookie.
    """

    def __init__(self, http: httpx.Client, shop_id: int) -> None:
        self.http = http
        self.shop_id = shop_id
        self.view: Optional[OptimisticMenu] = None

    def _fetch_menu(self) -> list[dict]:
        response = self.http.get(f"/api/admin/shops/{self.shop_id}/menu")
        payload = response.json()
        if not payload.get("success"):
            raise MenuClientError(payload.get("error") or f"menu load failed ({response.status_code})")
        return payload["data"]

    def load(self) -> OptimisticMenu:
        self.view = OptimisticMenu(self._fetch_menu())
        return self.view

    def refresh(self) -> OptimisticMenu:
        if self.view is None:
            return self.load()
        self.view.refetch(self._fetch_menu())
        return self.view

    def _require_view(self) -> OptimisticMenu:
        if self.view is None:
            raise MenuClientError("menu not loaded")
        return self.view

    def _send(self, method: str, url: str, body: Any) -> tuple[Optional[dict], Optional[str]]:
        try:
            response = self.http.request(method, url, json=body)
        except httpx.HTTPError as exc:
            return None, f"request failed: {exc}"
        try:
            payload = response.json()
        except ValueError:
            return None, f"unexpected response ({response.status_code})"
        if not payload.get("success"):
            return payload, payload.get("error") or f"request failed ({response.status_code})"
        return payload, None

    def _submit_order(self, url: str, updates: list[OrderUpdate]) -> bool:
        view = self._require_view()
        payload, error = self._send("PUT", url, [update.as_payload() for update in updates])
        if error is None and payload.get("partial"):
            error = f"positions not saved for {payload.get('failed_ids')}"
        if error is not None:
            view.diverge(error)
            return False
        view.confirm()
        return True

    def move_category(self, old_index: int, new_index: int) -> bool:
        updates = self._require_view().move_category(old_index, new_index)
        return self._submit_order(f"/api/admin/shops/{self.shop_id}/categories/order", updates)

    def move_item(self, category_id: int, old_index: int, new_index: int) -> bool:
        updates = self._require_view().move_item(category_id, old_index, new_index)
        return self._submit_order(f"/api/admin/categories/{category_id}/items/order", updates)

    def toggle_availability(self, item_id: int, is_available: bool) -> bool:
        view = self._require_view()
        previous = view.set_availability(item_id, is_available)
        _, error = self._send("PATCH", f"/api/admin/items/{item_id}/availability", {"is_available": is_available})
        if error is not None:
            logger.warning("availability change reverted item_id=%s: %s", item_id, error)
            view.revert_availability(item_id, previous)
            return False
        view.confirm()
        return True
