import json
import logging

from restaurant_api.core.logging_setup import JsonFormatter, mask_secrets
from restaurant_api.core.request_context import clear_request_context, set_request_context


def _record(message, *args, **extra):
    record = logging.LogRecord("restaurant_api.services.orders", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_expected_fields():
    record = _record("order created total=%s", "27.50", order_id=7, order_number="ORD-20260202-00001")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["module"] == "restaurant_api.services.orders"
    assert payload["message"] == "order created total=27.50"
    assert payload["order_id"] == 7
    assert payload["order_number"] == "ORD-20260202-00001"
    assert "timestamp" in payload
    assert "coupon_code" not in payload


def test_json_formatter_reads_request_context():
    set_request_context(request_id="req-9", restaurant_id="1", user_id="42")
    try:
        payload = json.loads(JsonFormatter().format(_record("request completed")))
    finally:
        clear_request_context()

    assert payload["request_id"] == "req-9"
    assert payload["restaurant_id"] == "1"
    assert payload["user_id"] == "42"


def test_explicit_extra_wins_over_context():
    set_request_context(request_id="from-context")
    try:
        payload = json.loads(JsonFormatter().format(_record("hello", request_id="from-extra")))
    finally:
        clear_request_context()

    assert payload["request_id"] == "from-extra"


def test_secrets_are_masked():
    assert mask_secrets("Authorization: Bearer abc.def") == "Authorization: Bearer ***"
    assert mask_secrets("password=hunter2 user=bob") == "password=*** user=bob"
    assert mask_secrets("token: xyz") == "token: ***"

    payload = json.loads(JsonFormatter().format(_record("login with secret=%s", "s3cr3t")))
    assert payload["message"] == "login with secret=***"
