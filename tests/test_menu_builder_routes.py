from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem
from tests.fixtures_data import FOREIGN_SHOP, SHOP, build_test_env


def _menu(client, shop_id=SHOP["id"]):
    response = client.get(f"/api/admin/shops/{shop_id}/menu")
    assert response.status_code == 200
    return response.json()["data"]


def test_get_menu_returns_categories_and_items_in_position_order():
    env = build_test_env()

    menu = _menu(env.client)

    assert [category["id"] for category in menu] == [10, 11, 12]
    assert [item["id"] for item in menu[1]["items"]] == [110, 111, 112]
    assert menu[2]["items"] == []


def test_unauthenticated_calls_report_not_authenticated():
    env = build_test_env(authenticated=False)

    response = env.client.get(f"/api/admin/shops/{SHOP['id']}/menu")

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Not authenticated",
        "error_code": "not_authenticated",
    }


def test_other_owners_shop_is_not_found():
    env = build_test_env()

    response = env.client.get(f"/api/admin/shops/{FOREIGN_SHOP['id']}/menu")
    delete_response = env.client.delete("/api/admin/items/200")

    assert response.status_code == 404
    assert response.json()["error"] == "Shop not found"
    assert delete_response.status_code == 404
    assert env.db.query(MenuItem).filter(MenuItem.id == 200).count() == 1


def test_create_category_appends_after_last_position():
    env = build_test_env()

    response = env.client.post(f"/api/admin/shops/{SHOP['id']}/categories", json={"name": "Drinks", "icon": "Coffee"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["order_index"] == 3
    assert [category["name"] for category in _menu(env.client)][-1] == "Drinks"


def test_update_category_changes_name_and_icon():
    env = build_test_env()

    response = env.client.put("/api/admin/categories/10", json={"name": "Small plates", "icon": "Pizza"})

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Small plates"
    assert response.json()["data"]["icon"] == "Pizza"


def test_delete_non_empty_category_is_rejected_by_foreign_key():
    env = build_test_env()

    response = env.client.delete("/api/admin/categories/11")

    assert response.status_code == 409
    assert response.json()["error"] == "Category is not empty. Delete its items first."
    assert response.json()["error_code"] == "foreign_key_violation"
    assert env.db.query(Category).filter(Category.id == 11).count() == 1
    assert env.db.query(MenuItem).filter(MenuItem.category_id == 11).count() == 3


def test_delete_empty_category_succeeds():
    env = build_test_env()

    response = env.client.delete("/api/admin/categories/12")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == 12
    assert env.db.query(Category).filter(Category.id == 12).count() == 0


def test_create_item_defaults_name_and_appends_to_category():
    env = build_test_env()

    response = env.client.post(
        "/api/admin/categories/11/items",
        data={"price": "9.5", "description": "Seasonal", "metadata": '{"spicy": true}'},
    )

    assert response.status_code == 201
    item = response.json()["data"]
    assert item["name"] == "New Item"
    assert item["order_index"] == 3
    assert item["is_available"] is True
    assert item["price"] == 9.5
    assert item["metadata"] == {"spicy": True}


def test_create_item_rejects_negative_price_and_bad_metadata():
    env = build_test_env()

    negative = env.client.post("/api/admin/categories/11/items", data={"name": "Broken", "price": "-1"})
    bad_json = env.client.post("/api/admin/categories/11/items", data={"name": "Broken", "metadata": "{nope"})

    assert negative.status_code == 400
    assert negative.json()["error_code"] == "validation_failure"
    assert bad_json.status_code == 400
    assert env.db.query(MenuItem).filter(MenuItem.name == "Broken").count() == 0


def test_update_item_moves_it_to_the_end_of_another_category():
    env = build_test_env()

    response = env.client.put("/api/admin/items/100", data={"category_id": "11", "price": "7"})

    assert response.status_code == 200
    item = response.json()["data"]
    assert item["category_id"] == 11
    assert item["order_index"] == 3
    assert item["price"] == 7.0


def test_update_item_cannot_move_into_foreign_category():
    env = build_test_env()

    response = env.client.put("/api/admin/items/100", data={"category_id": "20"})

    assert response.status_code == 404
    assert env.db.query(MenuItem).filter(MenuItem.id == 100).one().category_id == 10


def test_set_availability_and_delete_item():
    env = build_test_env()

    toggled = env.client.patch("/api/admin/items/111/availability", json={"is_available": False})
    deleted = env.client.delete("/api/admin/items/111")

    assert toggled.status_code == 200
    assert toggled.json()["data"]["is_available"] is False
    assert deleted.status_code == 200
    assert [item["id"] for item in _menu(env.client)[1]["items"]] == [110, 112]


def test_reorder_categories_persists_dense_positions():
    env = build_test_env()

    response = env.client.put(
        f"/api/admin/shops/{SHOP['id']}/categories/order",
        json=[{"id": 12, "order_index": 0}, {"id": 10, "order_index": 1}, {"id": 11, "order_index": 2}],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["partial"] is False
    assert [category["id"] for category in _menu(env.client)] == [12, 10, 11]


def test_reorder_items_rejects_ids_outside_category_and_duplicates():
    env = build_test_env()

    foreign = env.client.put(
        "/api/admin/categories/11/items/order",
        json=[{"id": 110, "order_index": 0}, {"id": 100, "order_index": 1}],
    )
    duplicated = env.client.put(
        "/api/admin/categories/11/items/order",
        json=[{"id": 110, "order_index": 0}, {"id": 110, "order_index": 1}],
    )

    assert foreign.status_code == 404
    assert duplicated.status_code == 400
    assert [item["id"] for item in _menu(env.client)[1]["items"]] == [110, 111, 112]


def test_reorder_items_reports_partial_failure_as_success(monkeypatch):
    from sqlalchemy.exc import OperationalError

    from menuboard.services import ordering

    env = build_test_env()
    original_write_row = ordering._write_row

    def _fail_bulk(db, model, updates):
        raise OperationalError("UPDATE", {}, Exception("bulk unavailable"))

    def _flaky_row(db, model, update_):
        if update_.id == 111:
            raise OperationalError("UPDATE", {}, Exception("row locked"))
        original_write_row(db, model, update_)

    monkeypatch.setattr(ordering, "_bulk_write", _fail_bulk)
    monkeypatch.setattr(ordering, "_write_row", _flaky_row)

    response = env.client.put(
        "/api/admin/categories/11/items/order",
        json=[{"id": 112, "order_index": 0}, {"id": 111, "order_index": 1}, {"id": 110, "order_index": 2}],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["partial"] is True
    assert body["failed_ids"] == [111]


def test_reorder_with_every_row_failing_is_a_persistence_failure(monkeypatch):
    from sqlalchemy.exc import OperationalError

    from menuboard.services import ordering

    env = build_test_env()

    def _fail(*args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("database unavailable"))

    monkeypatch.setattr(ordering, "_bulk_write", _fail)
    monkeypatch.setattr(ordering, "_write_row", _fail)

    response = env.client.put(
        f"/api/admin/shops/{SHOP['id']}/categories/order",
        json=[{"id": 11, "order_index": 0}, {"id": 10, "order_index": 1}, {"id": 12, "order_index": 2}],
    )

    assert response.status_code == 500
    assert response.json()["error_code"] == "persistence_failure"


def test_availability_toggle_round_trip_restores_original_state():
    env = build_test_env()

    first = env.client.patch("/api/admin/items/110/availability", json={"is_available": False})
    again = env.client.patch("/api/admin/items/110/availability", json={"is_available": False})
    back = env.client.patch("/api/admin/items/110/availability", json={"is_available": True})

    assert first.json()["data"]["is_available"] is False
    assert again.json()["data"]["is_available"] is False
    assert back.json()["data"]["is_available"] is True
    assert back.json()["data"]["order_index"] == 0


def test_reorder_must_cover_every_row_of_the_scope():
    env = build_test_env()

    categories = env.client.put(
        f"/api/admin/shops/{SHOP['id']}/categories/order",
        json=[{"id": 12, "order_index": 2}],
    )
    items = env.client.put(
        "/api/admin/categories/11/items/order",
        json=[{"id": 112, "order_index": 0}, {"id": 110, "order_index": 1}],
    )

    assert categories.status_code == 400
    assert categories.json()["error_code"] == "validation_failure"
    assert items.status_code == 400
    stored = [
        (row.id, row.order_index)
        for row in env.db.query(Category.id, Category.order_index)
        .filter(Category.shop_id == SHOP["id"])
        .order_by(Category.order_index)
    ]
    assert stored == [(10, 0), (11, 1), (12, 2)]
    assert [item["id"] for item in _menu(env.client)[1]["items"]] == [110, 111, 112]
