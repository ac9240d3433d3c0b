from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from menuboard.realtime.backoff import RetryConfig, calculate_delay_with_jitter
from menuboard.services.change_feed import MENU_ITEMS_TABLE, ChangeEvent, ChangeFeed, ChangeKind, Subscription

logger = logging.getLogger(__name__)
LISTENER_PREFIX = "[MENU_LISTENER]"


class MenuChangeListener:
    """Keeps a customer menu view current from item change events.

    Only ``updated`` events are applied: the changed fields are merged into
    the matching item wherever it sits in the nested category structure.
    Created and deleted rows are left for the next full load, since the
    event does not say where they belong in the ordering.
    """

    def __init__(self, categories: list[dict]) -> None:
        self._categories = copy.deepcopy(list(categories))
        self._subscription: Optional[Subscription] = None
        self.closed = False
        self.stale = False

    @property
    def categories(self) -> list[dict]:
        return self._categories

    def find_item(self, item_id: Any) -> Optional[dict]:
        for category in self._categories:
            for item in category.get("items", []):
                if item.get("id") == item_id:
                    return item
        return None

    def handle(self, event: ChangeEvent | dict) -> bool:
        if self.closed:
            return False
        if isinstance(event, dict):
            event = ChangeEvent.model_validate(event)
        if event.table != MENU_ITEMS_TABLE:
            return False

        if event.kind is not ChangeKind.UPDATED:
            self.stale = True
            logger.debug("%s %s event left for next load id=%s", LISTENER_PREFIX, event.kind.value, event.row_id)
            return False

        item = self.find_item(event.row_id)
        if item is None:
            # Another shop's item, or one this view never loaded.
            return False
        item.update(event.after or {})
        return True

    def reload(self, categories: list[dict]) -> None:
        self._categories = copy.deepcopy(list(categories))
        self.stale = False

    def attach(self, feed: ChangeFeed) -> "MenuChangeListener":
        if self._subscription is not None:
            raise RuntimeError("listener already attached")
        self._subscription = feed.subscribe(self.handle, table=MENU_ITEMS_TABLE)
        return self

    def close(self) -> None:
        self.closed = True
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def __enter__(self) -> "MenuChangeListener":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


async def _close_source(source: Any) -> None:
    closer = getattr(source, "aclose", None) or getattr(source, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result


async def follow(
    connect: Callable[[], AsyncIterator[ChangeEvent | dict]],
    listener: MenuChangeListener,
    *,
    retry: Optional[RetryConfig] = None,
    stop: Optional[asyncio.Event] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Feed ``listener`` from ``connect()``, reconnecting when the source drops.

    Returns the number of events delivered. Gives up by re-raising once
    ``retry.max_attempts`` consecutive connections have failed.
    """
    config = retry or RetryConfig()
    attempt = 0
    delivered = 0

    def _stopped() -> bool:
        return listener.closed or (stop is not None and stop.is_set())

    while not _stopped():
        source = None
        try:
            source = connect()
            async for event in source:
                attempt = 0
                listener.handle(event)
                delivered += 1
                if _stopped():
                    break
            return delivered
        except (ConnectionError, OSError) as exc:
            if attempt + 1 >= config.max_attempts:
                logger.error("%s giving up after %s attempts: %s", LISTENER_PREFIX, attempt + 1, exc)
                raise
            delay = calculate_delay_with_jitter(attempt, config)
            attempt += 1
            logger.warning("%s source dropped (%s), reconnecting in %.2fs", LISTENER_PREFIX, exc, delay)
            await sleep(delay)
        finally:
            if source is not None:
                await _close_source(source)
    return delivered
