import pytest
from fastapi.testclient import TestClient

from restaurant_api.services.event_bus import event_bus
from restaurant_api.services.order_events import (
    COUPON_REDEMPTION_FAILED,
    ORDER_CANCELLED,
    ORDER_CREATED,
    ORDER_PAID,
    ORDER_STATUS_CHANGED,
)


REQUIRED_ROUTES = {
    "/api/orders",
    "/api/orders/{order_id}",
    "/api/orders/number/{order_number}",
    "/api/orders/{order_id}/status",
    "/api/orders/{order_id}/pay",
    "/api/orders/{order_id}/cancel",
    "/api/orders/{order_id}/permanent",
    "/api/coupons",
    "/api/coupons/validate",
    "/api/coupons/code/{code}",
    "/api/coupons/restaurant/{restaurant_id}/current",
    "/api/restaurants",
    "/api/menu-items/{item_id}/availability",
    "/api/tables/{table_id}",
    "/api/inventory",
    "/api/inventory/{item_id}",
    "/api/promotions",
    "/api/promotions/{promotion_id}/use",
    "/api/promotions/restaurant/{restaurant_id}/current",
}


def test_api_startup_and_router_registration(monkeypatch):
    from restaurant_api import main
    from restaurant_api.services import event_handlers

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    try:
        with TestClient(main.app) as client:
            response = client.get("/")
            health_response = client.get("/health")
            docs_response = client.get("/docs")
            openapi_response = client.get("/openapi.json")
            registered = (
                event_bus.handlers_for(ORDER_CREATED),
                event_bus.handlers_for(COUPON_REDEMPTION_FAILED),
            )
    finally:
        for name in (ORDER_CREATED, ORDER_STATUS_CHANGED, ORDER_PAID, ORDER_CANCELLED):
            event_bus.unsubscribe(name, event_handlers.handle_order_event)
        event_bus.unsubscribe(COUPON_REDEMPTION_FAILED, event_handlers.handle_coupon_redemption_failed)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert docs_response.status_code == 200
    assert openapi_response.status_code == 200
    assert event_handlers.handle_order_event in registered[0]
    assert event_handlers.handle_coupon_redemption_failed in registered[1]

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)


def test_responses_carry_request_id(monkeypatch):
    from restaurant_api import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    client = TestClient(main.app)

    echoed = client.get("/health", headers={"X-Request-ID": "req-123"})
    generated = client.get("/health")

    assert echoed.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]


def test_sqlite_is_refused_in_production(monkeypatch):
    from restaurant_api.core import startup_checks

    monkeypatch.setattr(startup_checks, "IS_PROD", True)

    with pytest.raises(RuntimeError):
        startup_checks.validate_database_environment("sqlite:///./restaurant.db")

    startup_checks.validate_database_environment("postgresql://db/restaurant")


def test_migration_check_is_skipped_in_tests(monkeypatch, tmp_path):
    from restaurant_api.core import startup_checks

    monkeypatch.setattr(startup_checks, "IS_TEST", True)

    startup_checks.ensure_migrations_applied(engine=None, alembic_config_path=tmp_path / "missing.ini")


def test_missing_alembic_config_fails_outside_tests(monkeypatch, tmp_path):
    from restaurant_api.core import startup_checks

    monkeypatch.setattr(startup_checks, "IS_TEST", False)

    with pytest.raises(RuntimeError):
        startup_checks.ensure_migrations_applied(engine=None, alembic_config_path=tmp_path / "missing.ini")
