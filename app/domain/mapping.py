from __future__ import annotations
from typing import Any, Mapping, Optional

from .models import CLEAR, DETECTED, DoorUpdate


class InvalidWriteRequest(ValueError):
    pass


# Broker-relay bodies name the sensor text differently depending on the sender.
PAYLOAD_FIELDS = ("payload", "message", "status")


def from_payload(text: str) -> DoorUpdate:
    """Map a raw broker payload. Only the exact token DETECTED means open."""
    return DoorUpdate(is_open=(text == DETECTED), status=text)


def from_force(is_open: bool, status: Optional[str] = None) -> DoorUpdate:
    return DoorUpdate(
        is_open=bool(is_open),
        status=status or (DETECTED if is_open else CLEAR),
    )


def resolve_write_request(fields: Mapping[str, Any]) -> DoorUpdate:
    """Resolve any accepted write-request body into an update.

    ``{isOpen, status?}`` forces the state directly. Otherwise the first
    non-empty of ``payload``, ``message``, ``status`` is treated exactly like
    a broker message.
    """
    is_open = fields.get("isOpen")
    if is_open is not None:
        status = fields.get("status")
        return from_force(bool(is_open), str(status) if status else None)

    for name in PAYLOAD_FIELDS:
        value = fields.get(name)
        if value is not None and value != "":
            return from_payload(str(value))

    raise InvalidWriteRequest(
        "Request body must include isOpen or one of: " + ", ".join(PAYLOAD_FIELDS)
    )
