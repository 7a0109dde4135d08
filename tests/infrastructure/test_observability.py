"""Structured logging — JSON/text formatters, fault extras and handler setup."""

import json
import logging
import sys

from tenant_store.core.domain_types import FaultKind
from tenant_store.core.errors import ErrorContext, Fault
from tenant_store.infrastructure.observability import (
    JSONFormatter, TextFormatter, fault_fields, setup_logging,
)


def _record(msg="hello %s", args=("world",), extra=None, exc_info=None):
    return logging.getLogger("tenant_store.test").makeRecord(
        "tenant_store.test", logging.WARNING, __file__, 1, msg, args, exc_info,
        extra=extra,
    )


def _network_fault() -> Fault:
    return Fault(
        FaultKind.NETWORK, "Network error. Please check your connection.",
        retryable=True, remote_code=None,
        context=ErrorContext(tenant_id="dept-a", table="equipment", operation="insert"),
    )


def test_base_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "tenant_store.test"
    assert payload["message"] == "hello world"
    assert "timestamp" in payload
    assert "op" not in payload
    assert "fault" not in payload


def test_fault_extras_are_grouped():
    extra = {**fault_fields(_network_fault()), "attempt": 2}

    payload = json.loads(JSONFormatter().format(_record(extra=extra)))

    assert payload["tenant_id"] == "dept-a"
    assert payload["op"] == {"table": "equipment", "name": "insert", "attempt": 2}
    assert payload["fault"] == {"kind": "network", "retryable": True}


def test_unknown_extras_are_not_emitted():
    payload = json.loads(JSONFormatter().format(_record(extra={
        "row": {"serial_number": "A1"}, "table": "equipment",
    })))
    assert "row" not in json.dumps(payload)
    assert payload["op"] == {"table": "equipment"}


def test_exception_is_formatted():
    try:
        raise ValueError("bad")
    except ValueError:
        record = _record(msg="failed", args=(), exc_info=sys.exc_info())
    payload = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad" in payload["exception"]


def test_text_formatter_tags_tenant_and_fault():
    line = TextFormatter().format(_record(extra=fault_fields(_network_fault())))
    assert line.endswith("[tenant=dept-a fault=network]")
    assert "hello world" in line

    assert not TextFormatter().format(_record()).endswith("]")


def test_setup_logging_does_not_stack_handlers():
    before = len(logging.root.handlers)
    try:
        setup_logging("DEBUG", "json")
        setup_logging("INFO", "text")
        assert len(logging.root.handlers) == before + 1
        assert isinstance(logging.root.handlers[-1].formatter, TextFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        logging.root.removeHandler(logging.root.handlers[-1])
