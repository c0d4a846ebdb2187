from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.requested",
    "reservation.confirmed",
    "reservation.cancelled",
    "reservation.purged",
]
AuditInitiator = Literal["client", "payment_gateway", "system"]

AUDIT_LOGGER_NAME = "turnos.audit"


def _build_audit_logger() -> logging.Logger:
    """One JSON document per line on stderr, kept out of the application log."""
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.setLevel(logging.INFO)
    audit.propagate = False
    if not audit.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        audit.addHandler(stream)
    return audit


_audit_logger = _build_audit_logger()


def _plain(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec="minutes")
    return getattr(value, "value", value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    date_time: Optional[datetime],
    client_name: Optional[str] = None,
    service_type: Optional[str] = None,
    status_from: Optional[str] = None,
    status_to: Optional[str] = None,
    external_reference: Optional[str] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    fields: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "date_time": date_time,
        "client_name": client_name,
        "service_type": service_type,
        "status_from": status_from,
        "status_to": status_to,
        "external_reference": external_reference,
        "message": message,
        **(extra or {}),
    }
    record = {key: _plain(value) for key, value in fields.items() if value is not None}
    try:
        _audit_logger.info(json.dumps(record, ensure_ascii=True, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
