from __future__ import annotations
import json
from dataclasses import dataclass
from datetime import datetime

from ..core.timeutil import iso_utc


DETECTED = "DETECTED"
CLEAR = "CLEAR"


class ConnectionPhase:
    WIFI_CONNECTING = "WIFI_CONNECTING"
    MQTT_CONNECTING = "MQTT_CONNECTING"
    MQTT_DISCONNECTED = "MQTT_DISCONNECTED"
    MQTT_CONNECTED = "MQTT_CONNECTED"

    ALL = frozenset({WIFI_CONNECTING, MQTT_CONNECTING, MQTT_DISCONNECTED, MQTT_CONNECTED})


@dataclass(frozen=True)
class DoorUpdate:
    """A full replacement for the door state, before the store stamps it."""
    is_open: bool
    status: str


@dataclass(frozen=True)
class DoorState:
    is_open: bool
    status: str
    last_updated: datetime

    def to_dict(self) -> dict:
        return {
            "isOpen": self.is_open,
            "status": self.status,
            "lastUpdated": iso_utc(self.last_updated),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


INITIAL_STATE = DoorUpdate(is_open=False, status=CLEAR)


def phase_event(phase: str) -> str:
    return json.dumps({"status": phase})
