"""Structured Logging — one JSON object per line, grouped by tenant, operation and fault.

Invariants:
    - Every line carries timestamp, level, logger and message
    - tenant_id is top-level so a single field filters one department's logs
    - Operation context (table, operation, attempt, path) nests under "op"
    - Fault context (fault_kind, error_code, retryable) nests under "fault"
    - Only the fields named here are emitted; record payloads never reach the log

Design Decisions:
    - fault_fields() is the one place a Fault becomes logging extras, shared by
      the DAL, the retry executor and the HTTP error handlers
    - setup_logging replaces its own previous handler, so building several apps
      in one process (tests, reloads) never duplicates lines
"""

import logging
import json
from datetime import datetime, timezone

from tenant_store.core.errors import Fault

# record attribute -> key inside the nested group
OP_FIELDS = {
    "table": "table", "operation": "name", "attempt": "attempt", "path": "path",
}
FAULT_FIELDS = {
    "fault_kind": "kind", "error_code": "code", "retryable": "retryable",
}
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def fault_fields(fault: Fault) -> dict:
    """Logging extras describing a classified fault and where it happened."""
    return {
        "tenant_id": fault.context.tenant_id,
        "table": fault.context.table,
        "operation": fault.context.operation,
        "fault_kind": fault.kind.value,
        "error_code": fault.remote_code,
        "retryable": fault.retryable,
    }


def _group(record: logging.LogRecord, fields: dict[str, str]) -> dict:
    group = {}
    for attr, key in fields.items():
        value = getattr(record, attr, None)
        if value is not None:
            group[key] = value
    return group


class JSONFormatter(logging.Formatter):
    """Format logs as JSON with tenant/op/fault groups."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        tenant_id = getattr(record, "tenant_id", None)
        if tenant_id is not None:
            log["tenant_id"] = tenant_id
        op = _group(record, OP_FIELDS)
        if op:
            log["op"] = op
        fault = _group(record, FAULT_FIELDS)
        if fault:
            log["fault"] = fault
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for development; tags the department when known."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tenant_id = getattr(record, "tenant_id", None)
        kind = getattr(record, "fault_kind", None)
        tags = [f"tenant={tenant_id}"] if tenant_id is not None else []
        if kind is not None:
            tags.append(f"fault={kind}")
        return f"{line} [{' '.join(tags)}]" if tags else line


_handler: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the tenant-store handler on the root logger."""
    global _handler
    if _handler is not None:
        logging.root.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logging.root.addHandler(_handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
