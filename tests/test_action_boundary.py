from menuboard.models.shop import Shop
from menuboard.services.errors import NotFound, action_boundary
from tests.fixtures_data import make_session_factory, seed_database


@action_boundary
def _insert_orphan_shop(db):
    db.add(Shop(owner_id=9999, name="Orphan", slug="orphan", type="restaurant"))
    db.flush()


@action_boundary
def _missing(db):
    raise NotFound("Shop not found")


def test_persistence_error_rolls_back_the_session():
    db = make_session_factory()()
    seed_database(db)

    result = _insert_orphan_shop(db)

    assert result.success is False
    assert result.status_code == 500
    assert result.error_code == "persistence_failure"
    # Without a rollback the session would refuse further work.
    assert db.query(Shop).count() == 2


def test_session_passed_by_keyword_is_rolled_back_too():
    db = make_session_factory()()
    seed_database(db)

    result = _insert_orphan_shop(db=db)

    assert result.status_code == 500
    assert db.query(Shop).filter(Shop.slug == "orphan").count() == 0


def test_menu_errors_become_failed_results():
    result = _missing(None)

    assert result.to_payload() == {"success": False, "error": "Shop not found", "error_code": "not_found"}
    assert result.status_code == 404
