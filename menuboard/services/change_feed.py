from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Callable, DefaultDict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)
CHANGE_FEED_PREFIX = "[CHANGE_FEED]"
MENU_ITEMS_TABLE = "menu_items"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ChangeEvent(BaseModel):
    kind: ChangeKind
    table: str = MENU_ITEMS_TABLE
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def row_id(self) -> Any:
        for row in (self.after, self.before):
            if row and row.get("id") is not None:
                return row["id"]
        return None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def created(cls, row: dict[str, Any], table: str = MENU_ITEMS_TABLE) -> "ChangeEvent":
        return cls(kind=ChangeKind.CREATED, table=table, after=row)

    @classmethod
    def updated(cls, row: dict[str, Any], table: str = MENU_ITEMS_TABLE) -> "ChangeEvent":
        return cls(kind=ChangeKind.UPDATED, table=table, after=row)

    @classmethod
    def deleted(cls, row_id: Any, table: str = MENU_ITEMS_TABLE) -> "ChangeEvent":
        return cls(kind=ChangeKind.DELETED, table=table, before={"id": row_id})


Handler = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, handler: Handler) -> None:
        self.table = table
        self.handler = handler
        self._feed = feed
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._unsubscribe(self)


class ChangeFeed:
    """Fans row change events out to subscribers of a table.

    Events are not scoped to a shop: a subscriber sees every shop's changes
    and is expected to ignore rows it does not hold.
    """

    def __init__(self) -> None:
        self._subscriptions: DefaultDict[str, List[Subscription]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, handler: Handler, table: str = MENU_ITEMS_TABLE) -> Subscription:
        subscription = Subscription(self, table, handler)
        with self._lock:
            self._subscriptions[table].append(subscription)
        logger.debug("%s subscribed table=%s", CHANGE_FEED_PREFIX, table)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            handlers = self._subscriptions.get(subscription.table, [])
            if subscription in handlers:
                handlers.remove(subscription)
        logger.debug("%s unsubscribed table=%s", CHANGE_FEED_PREFIX, subscription.table)

    def subscriber_count(self, table: str = MENU_ITEMS_TABLE) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.get(event.table, []))
        if not subscriptions:
            logger.debug("%s no subscribers for %s", CHANGE_FEED_PREFIX, event.table)
            return
        for subscription in subscriptions:
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    "%s subscriber failed",
                    CHANGE_FEED_PREFIX,
                    extra={"event_kind": event.kind.value, "table": event.table},
                )

    def publish_all(self, events: list[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)

    def open_stream(self, table: str = MENU_ITEMS_TABLE) -> "EventStream":
        return EventStream(self, table, asyncio.get_running_loop())


class EventStream:
    """Async iterator over a feed, bound to the event loop that opened it.

    The subscription is registered on construction so no event published
    after ``open_stream`` returns is missed.
    """

    def __init__(self, feed: ChangeFeed, table: str, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._subscription = feed.subscribe(self._enqueue, table=table)

    def _enqueue(self, event: ChangeEvent) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    @property
    def closed(self) -> bool:
        return self._subscription.closed

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()

    def close(self) -> None:
        self._subscription.close()


def get_change_feed(app) -> ChangeFeed:
    feed = getattr(app.state, "change_feed", None)
    if feed is None:
        feed = ChangeFeed()
        app.state.change_feed = feed
    return feed
