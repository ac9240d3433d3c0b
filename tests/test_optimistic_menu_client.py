import httpx
import pytest

from menuboard.client import MenuBuilderClient, MenuClientError
from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem
from menuboard.realtime.sync_state import OptimisticMenu, SyncState
from tests.fixtures_data import SHOP, build_test_env

VIEW = [
    {"id": 1, "order_index": 0, "items": [{"id": 10, "order_index": 0, "is_available": True}]},
    {"id": 2, "order_index": 1, "items": []},
    {"id": 3, "order_index": 2, "items": []},
]


def test_local_move_applies_immediately_and_waits_for_confirmation():
    view = OptimisticMenu(VIEW)

    updates = view.move_category(2, 0)

    assert view.category_ids() == [3, 1, 2]
    assert [update.as_payload() for update in updates] == [
        {"id": 3, "order_index": 0},
        {"id": 1, "order_index": 1},
        {"id": 2, "order_index": 2},
    ]
    assert view.state is SyncState.PENDING_WRITE

    view.confirm()
    assert view.state is SyncState.SYNCED


def test_failed_write_diverges_without_rolling_back():
    view = OptimisticMenu(VIEW)

    view.move_category(0, 2)
    view.diverge("network down")

    assert view.state is SyncState.DIVERGED
    assert view.category_ids() == [2, 3, 1]

    view.refetch(VIEW)
    assert view.state is SyncState.SYNCED
    assert view.category_ids() == [1, 2, 3]
    assert view.divergence_reason is None


def test_state_stays_pending_until_last_write_confirms():
    view = OptimisticMenu(VIEW)

    view.move_category(0, 1)
    view.set_availability(10, False)
    view.confirm()

    assert view.state is SyncState.PENDING_WRITE
    view.confirm()
    assert view.state is SyncState.SYNCED


def test_availability_revert_restores_previous_value():
    view = OptimisticMenu(VIEW)

    previous = view.set_availability(10, False)
    view.revert_availability(10, previous)

    assert view.categories[0]["items"][0]["is_available"] is True
    assert view.state is SyncState.SYNCED


def test_client_move_category_persists_and_syncs():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()

    assert client.move_category(2, 0) is True

    assert client.view.state is SyncState.SYNCED
    assert client.view.category_ids() == [12, 10, 11]
    order = [row.id for row in env.db.query(Category.id).filter(Category.shop_id == 1).order_by(Category.order_index)]
    assert order == [12, 10, 11]


def test_client_move_item_persists_new_order():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()

    assert client.move_item(11, 0, 2) is True

    assert client.view.item_ids(11) == [111, 112, 110]
    refreshed = client.refresh()
    assert refreshed.item_ids(11) == [111, 112, 110]


def test_client_diverges_on_partial_reorder(monkeypatch):
    from sqlalchemy.exc import OperationalError

    from menuboard.services import ordering

    env = build_test_env()
    original_write_row = ordering._write_row

    def _fail_bulk(db, model, updates):
        raise OperationalError("UPDATE", {}, Exception("bulk unavailable"))

    def _flaky_row(db, model, update_):
        if update_.id == 10:
            raise OperationalError("UPDATE", {}, Exception("row locked"))
        original_write_row(db, model, update_)

    monkeypatch.setattr(ordering, "_bulk_write", _fail_bulk)
    monkeypatch.setattr(ordering, "_write_row", _flaky_row)

    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()

    assert client.move_category(0, 2) is False
    assert client.view.state is SyncState.DIVERGED
    # The local order is kept even though the server holds a mixed sequence.
    assert client.view.category_ids() == [11, 12, 10]

    client.refresh()
    assert client.view.state is SyncState.SYNCED


def test_client_diverges_when_transport_fails():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()

    def _broken_request(*args, **kwargs):
        raise httpx.ConnectError("connection refused")

    env.client.request = _broken_request

    assert client.move_category(0, 1) is False
    assert client.view.state is SyncState.DIVERGED
    assert "connection refused" in client.view.divergence_reason


def test_client_reverts_failed_availability_toggle():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()
    env.db.query(MenuItem).filter(MenuItem.id == 110).delete()
    env.db.commit()

    assert client.toggle_availability(110, False) is False

    item = next(item for item in client.view.categories[1]["items"] if item["id"] == 110)
    assert item["is_available"] is True
    assert client.view.state is SyncState.SYNCED


def test_client_toggle_availability_confirms():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])
    client.load()

    assert client.toggle_availability(111, False) is True
    assert env.db.query(MenuItem).filter(MenuItem.id == 111).one().is_available is False


def test_client_requires_loaded_menu():
    env = build_test_env()
    client = MenuBuilderClient(env.client, SHOP["id"])

    with pytest.raises(MenuClientError):
        client.move_category(0, 1)


def test_client_load_reports_errors():
    env = build_test_env(authenticated=False)
    client = MenuBuilderClient(env.client, SHOP["id"])

    with pytest.raises(MenuClientError, match="Not authenticated"):
        client.load()
