from __future__ import annotations

from typing import Any, Protocol

import structlog

logger = structlog.get_logger("boostify.audit")


class AuditSink(Protocol):
    def record(self, event: str, **fields: Any) -> None: ...


class StructlogAuditSink:
    """Writes one structured record per order transition or ledger mutation."""

    def record(self, event: str, **fields: Any) -> None:
        logger.info(event, audit=True, **{key: _as_loggable(value) for key, value in fields.items()})


def _as_loggable(value: Any) -> Any:
    if value is None or isinstance(value, bool | int | float | str):
        return value
    return str(value)


_default_sink: AuditSink = StructlogAuditSink()


def get_audit_sink() -> AuditSink:
    return _default_sink
