from datetime import datetime, timedelta, timezone

import pytest

from restaurant_api.core.errors import VALIDATION, DomainError
from restaurant_api.services.activation import ActivationCommand
from restaurant_api.services.promotions import (
    can_be_used,
    create_promotion,
    set_promotion_status,
    use_promotion,
)
from tests.fixtures_data import (
    BURGER_ID,
    FRIES_ID,
    OTHER_RESTAURANT_ITEM_ID,
    STAFF_USER,
    build_client,
    build_session,
    seed_catalog,
)


def _seeded_client(user=None):
    db = build_session()
    seed_catalog(db)
    return build_client(db, user=user), db


def _payload(**overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "restaurant_id": 1,
        "name": "Burger Tuesday",
        "description": "Two burgers and fries for less",
        "kind": "combo",
        "discount_value": "15",
        "starts_at": (now - timedelta(days=1)).isoformat(),
        "ends_at": (now + timedelta(days=7)).isoformat(),
        "menu_item_ids": [BURGER_ID, FRIES_ID],
    }
    payload.update(overrides)
    return payload


def test_create_and_fetch_a_promotion():
    client, _ = _seeded_client(user=STAFF_USER)

    created = client.post("/api/promotions", json=_payload())
    fetched = client.get(f"/api/promotions/{created.json()['id']}")

    assert created.status_code == 201
    body = fetched.json()
    assert body["kind"] == "COMBO"
    assert body["discount_kind"] == "PERCENTAGE"
    assert body["discount_value"] == 15.0
    assert body["menu_item_ids"] == [BURGER_ID, FRIES_ID]
    assert body["conditions"] == "No additional conditions"
    assert body["status"] == "ACTIVE"
    assert body["current_uses"] == 0
    assert body["created_by"] == "42"


@pytest.mark.parametrize(
    "overrides, status_code",
    [
        ({"restaurant_id": 99}, 404),
        ({"menu_item_ids": [BURGER_ID, OTHER_RESTAURANT_ITEM_ID]}, 404),
        ({"kind": "FLASH_SALE"}, 422),
        ({"discount_value": "120"}, 422),
        ({"discount_kind": "FIXED_AMOUNT", "discount_value": "120"}, 201),
        ({"ends_at": (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()}, 422),
        ({"menu_item_ids": []}, 422),
        ({"description": "short"}, 422),
    ],
)
def test_creation_rules(overrides, status_code):
    client, _ = _seeded_client()

    response = client.post("/api/promotions", json=_payload(**overrides))

    assert response.status_code == status_code


def test_missing_menu_items_are_named():
    client, _ = _seeded_client()

    response = client.post("/api/promotions", json=_payload(menu_item_ids=[BURGER_ID, OTHER_RESTAURANT_ITEM_ID, 77]))

    assert response.json()["detail"] == f"Menu items not found: {OTHER_RESTAURANT_ITEM_ID}, 77"


def test_window_already_closed_is_finished_on_creation():
    client, _ = _seeded_client()
    now = datetime.now(timezone.utc)

    response = client.post(
        "/api/promotions",
        json=_payload(starts_at=(now - timedelta(days=10)).isoformat(), ends_at=(now - timedelta(days=3)).isoformat()),
    )

    assert response.status_code == 201
    assert response.json()["status"] == "FINISHED"


def test_current_promotions_exclude_future_paused_and_other_restaurants():
    client, _ = _seeded_client()
    now = datetime.now(timezone.utc)
    soon = client.post("/api/promotions", json=_payload(name="Ends soon", ends_at=(now + timedelta(days=1)).isoformat()))
    later = client.post("/api/promotions", json=_payload(name="Ends later", ends_at=(now + timedelta(days=9)).isoformat()))
    client.post("/api/promotions", json=_payload(name="Next month", starts_at=(now + timedelta(days=30)).isoformat(), ends_at=(now + timedelta(days=40)).isoformat()))
    paused = client.post("/api/promotions", json=_payload(name="Paused one"))
    client.patch(f"/api/promotions/{paused.json()['id']}/deactivate")

    current = client.get("/api/promotions/restaurant/1/current")
    filtered = client.get("/api/promotions", params={"restaurant_id": 1, "current": True})
    other_restaurant = client.get("/api/promotions/restaurant/2/current")

    assert [p["name"] for p in current.json()] == ["Ends soon", "Ends later"]
    assert {p["id"] for p in filtered.json()["data"]} == {soon.json()["id"], later.json()["id"]}
    assert other_restaurant.json() == []


def test_list_filters_by_kind_and_status():
    client, _ = _seeded_client()
    client.post("/api/promotions", json=_payload(name="Combo deal"))
    happy = client.post("/api/promotions", json=_payload(name="Happy hour", kind="HAPPY_HOUR"))
    client.patch(f"/api/promotions/{happy.json()['id']}/deactivate")

    by_kind = client.get("/api/promotions", params={"kind": "happy_hour"})
    by_status = client.get("/api/promotions", params={"status": "ACTIVE"})
    bad_status = client.get("/api/promotions", params={"status": "SLEEPING"})

    assert [p["name"] for p in by_kind.json()["data"]] == ["Happy hour"]
    assert [p["name"] for p in by_status.json()["data"]] == ["Combo deal"]
    assert bad_status.status_code == 422


def test_using_a_limited_promotion_until_it_finishes():
    client, _ = _seeded_client()
    promotion_id = client.post("/api/promotions", json=_payload(max_uses=2)).json()["id"]

    first = client.post(f"/api/promotions/{promotion_id}/use")
    second = client.post(f"/api/promotions/{promotion_id}/use")
    third = client.post(f"/api/promotions/{promotion_id}/use")

    assert first.status_code == 200
    assert first.json()["discount"] == {"kind": "PERCENTAGE", "value": 15.0}
    assert first.json()["promotion"]["status"] == "ACTIVE"
    assert second.json()["promotion"]["current_uses"] == 2
    assert second.json()["promotion"]["status"] == "FINISHED"
    assert third.status_code == 422
    assert third.json()["error"] == "VALIDATION"


def test_paused_promotion_cannot_be_used_until_resumed():
    client, _ = _seeded_client()
    promotion_id = client.post("/api/promotions", json=_payload()).json()["id"]

    client.patch(f"/api/promotions/{promotion_id}/deactivate")
    while_paused = client.post(f"/api/promotions/{promotion_id}/use")
    resumed = client.patch(f"/api/promotions/{promotion_id}/activate")
    after_resume = client.post(f"/api/promotions/{promotion_id}/use")

    assert while_paused.status_code == 422
    assert resumed.json()["status"] == "ACTIVE"
    assert after_resume.status_code == 200
    assert client.post("/api/promotions/99/use").status_code == 404


def test_update_keeps_restaurant_and_author():
    client, _ = _seeded_client(user=STAFF_USER)
    promotion_id = client.post("/api/promotions", json=_payload(max_uses=5)).json()["id"]
    client.post(f"/api/promotions/{promotion_id}/use")
    client.post(f"/api/promotions/{promotion_id}/use")

    updated = client.put(
        f"/api/promotions/{promotion_id}",
        json={"name": "Burger Wednesday", "restaurant_id": 2, "created_by": "someone", "discount_value": "20"},
    )
    too_low = client.put(f"/api/promotions/{promotion_id}", json={"max_uses": 1})
    inverted = client.put(
        f"/api/promotions/{promotion_id}",
        json={"ends_at": (datetime.now(timezone.utc) - timedelta(days=5)).isoformat()},
    )

    assert updated.json()["name"] == "Burger Wednesday"
    assert updated.json()["restaurant_id"] == 1
    assert updated.json()["created_by"] == "42"
    assert updated.json()["discount_value"] == 20.0
    assert too_low.status_code == 422
    assert inverted.status_code == 422


def test_deleted_promotion_disappears():
    client, _ = _seeded_client()
    promotion_id = client.post("/api/promotions", json=_payload()).json()["id"]

    deleted = client.delete(f"/api/promotions/{promotion_id}")

    assert deleted.json() == {"ok": True, "deleted_id": promotion_id}
    assert client.get(f"/api/promotions/{promotion_id}").status_code == 404
    assert client.get("/api/promotions").json()["data"] == []
    assert client.get("/api/promotions/restaurant/1/current").json() == []


def test_ended_promotion_stays_finished_when_reactivated():
    db = build_session()
    seed_catalog(db)
    start = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    data = {
        "restaurant_id": 1,
        "name": "Spring week",
        "description": "Ten percent off burgers all week",
        "kind": "PROMOTION",
        "discount_value": "10",
        "starts_at": start,
        "ends_at": start + timedelta(days=7),
        "menu_item_ids": [BURGER_ID],
    }
    promotion = create_promotion(db, data, created_by="7", now=start)
    later = start + timedelta(days=8)

    assert can_be_used(promotion, start + timedelta(days=1))
    assert not can_be_used(promotion, later)
    assert set_promotion_status(db, promotion.id, ActivationCommand.ACTIVATE, now=later).status == "FINISHED"
    with pytest.raises(DomainError) as exc_info:
        use_promotion(db, promotion.id, now=later)
    assert exc_info.value.kind == VALIDATION
