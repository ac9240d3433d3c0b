from fastapi.testclient import TestClient

from menuboard.services.change_feed import get_change_feed
from tests.fixtures_data import SHOP, build_test_env


def test_websocket_streams_item_updates():
    env = build_test_env()

    with env.client.websocket_connect("/realtime/menu-items") as websocket:
        env.client.patch("/api/admin/items/111/availability", json={"is_available": False})
        message = websocket.receive_json()

    assert message["kind"] == "updated"
    assert message["table"] == "menu_items"
    assert message["after"]["id"] == 111
    assert message["after"]["is_available"] is False
    assert message["committed_at"]


def test_websocket_disconnect_unsubscribes():
    env = build_test_env()
    feed = get_change_feed(env.app)

    with env.client.websocket_connect("/realtime/menu-items"):
        assert feed.subscriber_count() == 1

    assert feed.subscriber_count() == 0


def test_item_reorder_publishes_one_update_per_row():
    env = build_test_env()
    received = []
    get_change_feed(env.app).subscribe(received.append)

    env.client.put(
        "/api/admin/categories/11/items/order",
        json=[{"id": 112, "order_index": 0}, {"id": 110, "order_index": 1}, {"id": 111, "order_index": 2}],
    )

    assert [(event.row_id, event.after["order_index"]) for event in received] == [(112, 0), (110, 1), (111, 2)]


def test_item_lifecycle_events_are_published():
    env = build_test_env()
    received = []
    get_change_feed(env.app).subscribe(received.append)

    created = env.client.post("/api/admin/categories/12/items", data={"name": "Gelato"}).json()["data"]
    env.client.put(f"/api/admin/items/{created['id']}", data={"price": "4.5"})
    env.client.delete(f"/api/admin/items/{created['id']}")

    assert [event.kind.value for event in received] == ["created", "updated", "deleted"]
    assert received[2].before == {"id": created["id"]}


def test_category_changes_do_not_touch_item_feed():
    env = build_test_env()
    received = []
    get_change_feed(env.app).subscribe(received.append)

    sides = env.client.post(f"/api/admin/shops/{SHOP['id']}/categories", json={"name": "Sides"}).json()["data"]
    reordered = env.client.put(
        f"/api/admin/shops/{SHOP['id']}/categories/order",
        json=[{"id": cid, "order_index": index} for index, cid in enumerate([sides["id"], 11, 10, 12])],
    )

    assert reordered.status_code == 200
    assert received == []


def test_app_startup_registers_routes(monkeypatch):
    from menuboard import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        health = client.get("/health")
        openapi = client.get("/openapi.json")

    assert health.status_code == 200
    assert health.json() == {"status": "ok"}
    assert health.headers.get("X-Request-ID")
    paths = set(openapi.json()["paths"])
    assert {
        "/api/admin/shops/{shop_id}/menu",
        "/api/admin/shops/{shop_id}/categories/order",
        "/api/admin/categories/{category_id}/items/order",
        "/api/admin/items/{item_id}/availability",
        "/public/shops/{slug}/menu",
        "/api/auth/login",
    }.issubset(paths)
    assert main.app.url_path_for("menu_items_feed") == "/realtime/menu-items"
