"""
Name: Structured Logger Tests
"""

import json
import logging

import pytest

from storefront.context import operation_scope, session_id_var
from storefront.logger import JSONFormatter

pytestmark = pytest.mark.unit


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "storefront", logging.WARNING, __file__, 10, "Cart fetch failed", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_includes_context_and_extras():
    token = session_id_var.set("sess-1")
    try:
        with operation_scope("cart.add_item"):
            payload = json.loads(JSONFormatter().format(_record(product_id="p1")))
    finally:
        session_id_var.reset(token)

    assert payload["message"] == "Cart fetch failed"
    assert payload["level"] == "WARNING"
    assert payload["session_id"] == "sess-1"
    assert payload["operation"] == "cart.add_item"
    assert payload["product_id"] == "p1"


def test_formatter_drops_sensitive_fields():
    payload = json.loads(
        JSONFormatter().format(_record(token="jwt", password="pw", Authorization="Bearer x"))
    )

    assert "token" not in payload
    assert "password" not in payload
    assert "Authorization" not in payload
