from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)


def menu_builder_path(shop_id: int) -> str:
    return f"/menu-builder/{shop_id}"


def public_shop_path(slug: str) -> str:
    return f"/{slug}"


class PageCache:
    """Rendered views keyed by path, recomputed on the first read after a revalidation.

    Each path carries a generation bumped by every revalidation. A render is
    stored only if no revalidation of its path happened while it ran, so a
    read racing a mutation never caches the pre-mutation page.
    """

    def __init__(self) -> None:
        self._pages: dict[str, Any] = {}
        self._generations: dict[str, int] = {}
        self._lock = Lock()

    def get_or_render(self, path: str, render: Callable[[], Any]) -> Any:
        with self._lock:
            if path in self._pages:
                return self._pages[path]
            generation = self._generations.get(path, 0)
        page = render()
        with self._lock:
            if self._generations.get(path, 0) == generation:
                self._pages[path] = page
            else:
                logger.debug("discarded render of %s, revalidated while rendering", path)
        return page

    def is_cached(self, path: str) -> bool:
        with self._lock:
            return path in self._pages

    def revalidate_path(self, path: str) -> None:
        with self._lock:
            self._pages.pop(path, None)
            self._generations[path] = self._generations.get(path, 0) + 1
        logger.debug("revalidated %s", path)

    def revalidate_shop(self, shop) -> None:
        self.revalidate_path(menu_builder_path(shop.id))
        self.revalidate_path(public_shop_path(shop.slug))

    def clear(self) -> None:
        with self._lock:
            self._pages.clear()
            for path in self._generations:
                self._generations[path] += 1


def get_page_cache(app) -> PageCache:
    cache = getattr(app.state, "page_cache", None)
    if cache is None:
        cache = PageCache()
        app.state.page_cache = cache
    return cache
