"""MQTT ingest: subscribes to the sensor topic and feeds the relay."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from ..domain.models import ConnectionPhase
from .relay import DoorRelay

logger = logging.getLogger(__name__)


class MqttIngestAdapter:
    """Threaded paho-mqtt client that hands sensor messages to the asyncio loop.

    Reconnection is left to paho: ``connect_async`` + ``loop_start`` keeps
    retrying with the client's own backoff, so a broker outage never stops
    the process and never changes the door state.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        relay: DoorRelay,
        host: str,
        port: int,
        topic: str,
        keepalive: int = 60,
        client_id_prefix: str = "door-relay",
        username: str = "",
        password: str = "",
        tls: bool = False,
        announce_connection: bool = True,
        client_factory: Callable[..., Any] = mqtt.Client,
    ) -> None:
        self._loop = loop
        self._relay = relay
        self._host = host
        self._port = port
        self._topic = topic
        self._keepalive = keepalive
        self._client_id = f"{client_id_prefix}-{uuid.uuid4().hex[:8]}"
        self._username = username
        self._password = password
        self._tls = tls
        self._announce_connection = announce_connection
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def topic(self) -> str:
        return self._topic

    def start(self) -> None:
        self.stop()
        logger.info(
            "Connecting to MQTT broker %s:%s (topic=%s client_id=%s)",
            self._host, self._port, self._topic, self._client_id,
        )

        client = self._client_factory(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
        )
        client.enable_logger(logger)
        if self._username and self._password:
            client.username_pw_set(self._username, self._password)
        if self._tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message

        client.connect_async(self._host, self._port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True

    def stop(self) -> None:
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            logger.info("MQTT client stopped")

    # --- paho callbacks (run on paho's network thread) ---

    def _on_connect(self, client: Any, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connect refused: %s", reason_code)
            self._announce(ConnectionPhase.MQTT_DISCONNECTED)
            return
        logger.info("Connected to MQTT broker %s:%s", self._host, self._port)
        client.subscribe(self._topic, qos=0)
        self._announce(ConnectionPhase.MQTT_CONNECTED)

    def _on_connect_fail(self, _client: Any, _userdata: Any) -> None:
        logger.error("MQTT connection to %s:%s failed, paho will retry", self._host, self._port)
        self._announce(ConnectionPhase.MQTT_DISCONNECTED)

    def _on_disconnect(self, _client: Any, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
        if not self._running:
            return
        logger.warning("MQTT disconnected: %s", reason_code)
        self._announce(ConnectionPhase.MQTT_DISCONNECTED)

    def _on_subscribe(self, _client: Any, _userdata: Any, _mid: int, reason_codes: Any, _properties: Any) -> None:
        failures = [rc for rc in reason_codes if rc.is_failure]
        if failures:
            logger.error("Subscription to %s failed: %s", self._topic, failures[0])
        else:
            logger.info("Subscribed to topic: %s", self._topic)

    def _on_message(self, _client: Any, _userdata: Any, msg: Any) -> None:
        payload = msg.payload.decode("utf-8", errors="replace")
        logger.debug("MQTT message topic=%s payload=%r", msg.topic, payload)
        self._loop.call_soon_threadsafe(self._relay.ingest, payload)

    def _announce(self, phase: str) -> None:
        if self._announce_connection:
            self._loop.call_soon_threadsafe(self._relay.announce, phase)
