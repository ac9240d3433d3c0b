import asyncio

import pytest

from menuboard.realtime.backoff import RetryConfig, calculate_delay_with_jitter
from menuboard.realtime.listener import MenuChangeListener, follow
from menuboard.services.change_feed import ChangeEvent, ChangeFeed, ChangeKind

VIEW = [
    {"id": 1, "name": "Starters", "items": [{"id": 100, "name": "Soup", "price": 8.5, "is_available": True}]},
    {
        "id": 2,
        "name": "Mains",
        "items": [
            {"id": 200, "name": "Burger", "price": 16.5, "is_available": True},
            {"id": 201, "name": "Salmon", "price": 24.0, "is_available": True},
        ],
    },
]


def test_updated_event_merges_into_matching_item_only():
    listener = MenuChangeListener(VIEW)

    applied = listener.handle(ChangeEvent.updated({"id": 201, "price": 26.0, "is_available": False}))

    assert applied is True
    salmon = listener.find_item(201)
    assert salmon == {"id": 201, "name": "Salmon", "price": 26.0, "is_available": False}
    assert listener.find_item(200)["price"] == 16.5
    assert listener.find_item(100)["is_available"] is True
    # The source structure is never mutated.
    assert VIEW[1]["items"][1]["price"] == 24.0


def test_unknown_item_is_a_no_op():
    listener = MenuChangeListener(VIEW)
    before = [dict(category) for category in listener.categories]

    assert listener.handle(ChangeEvent.updated({"id": 999, "price": 1.0})) is False
    assert listener.categories == before


def test_created_and_deleted_events_leave_view_stale():
    listener = MenuChangeListener(VIEW)

    assert listener.handle(ChangeEvent.created({"id": 300, "name": "Pie", "category_id": 2})) is False
    assert listener.handle(ChangeEvent.deleted(200)) is False

    assert listener.stale is True
    assert listener.find_item(300) is None
    assert listener.find_item(200) is not None

    listener.reload(VIEW)
    assert listener.stale is False


def test_listener_accepts_wire_payloads():
    listener = MenuChangeListener(VIEW)
    payload = ChangeEvent.updated({"id": 100, "name": "Tomato Soup"}).to_payload()

    assert payload["kind"] == "updated"
    assert listener.handle(payload) is True
    assert listener.find_item(100)["name"] == "Tomato Soup"


def test_attach_and_close_manage_the_subscription():
    feed = ChangeFeed()
    listener = MenuChangeListener(VIEW).attach(feed)
    assert feed.subscriber_count() == 1

    feed.publish(ChangeEvent.updated({"id": 100, "is_available": False}))
    listener.close()
    feed.publish(ChangeEvent.updated({"id": 100, "is_available": True}))

    assert feed.subscriber_count() == 0
    assert listener.find_item(100)["is_available"] is False


def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def _broken(event):
        raise RuntimeError("boom")

    feed.subscribe(_broken)
    feed.subscribe(received.append)
    feed.publish(ChangeEvent.updated({"id": 1}))

    assert [event.kind for event in received] == [ChangeKind.UPDATED]


def test_feed_only_delivers_subscribed_table():
    feed = ChangeFeed()
    received = []
    feed.subscribe(received.append, table="categories")

    feed.publish(ChangeEvent.updated({"id": 1}))

    assert received == []


def test_open_stream_yields_published_events():
    async def scenario():
        feed = ChangeFeed()
        stream = feed.open_stream()
        feed.publish(ChangeEvent.updated({"id": 7, "name": "Tea"}))
        event = await asyncio.wait_for(stream.__anext__(), timeout=1)
        stream.close()
        return event, feed.subscriber_count()

    event, remaining = asyncio.run(scenario())

    assert event.row_id == 7
    assert remaining == 0


def test_backoff_grows_exponentially_and_is_capped():
    config = RetryConfig(initial_delay=1.0, max_delay=5.0, jitter_factor=0.0, max_attempts=3)

    assert [calculate_delay_with_jitter(attempt, config) for attempt in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_retry_config_rejects_inconsistent_values():
    with pytest.raises(ValueError):
        RetryConfig(initial_delay=5.0, max_delay=1.0)
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)


def test_follow_reconnects_after_source_drops():
    connections = []
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    def connect():
        connections.append(len(connections))

        async def source():
            if len(connections) == 1:
                yield ChangeEvent.updated({"id": 100, "price": 9.0})
                raise ConnectionError("socket closed")
            yield ChangeEvent.updated({"id": 200, "price": 17.0}).to_payload()

        return source()

    listener = MenuChangeListener(VIEW)
    retry = RetryConfig(initial_delay=0.5, max_delay=1.0, jitter_factor=0.0, max_attempts=3)

    delivered = asyncio.run(follow(connect, listener, retry=retry, sleep=_sleep))

    assert delivered == 2
    assert len(connections) == 2
    assert delays == [0.5]
    assert listener.find_item(100)["price"] == 9.0
    assert listener.find_item(200)["price"] == 17.0


def test_follow_gives_up_after_max_attempts():
    async def _sleep(delay):
        return None

    def connect():
        async def source():
            raise OSError("unreachable")
            yield  # pragma: no cover

        return source()

    retry = RetryConfig(initial_delay=0.1, max_delay=0.1, jitter_factor=0.0, max_attempts=2)

    with pytest.raises(OSError):
        asyncio.run(follow(connect, MenuChangeListener(VIEW), retry=retry, sleep=_sleep))
