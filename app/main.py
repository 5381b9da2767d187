from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .core.config import settings
from .core.log import configure_logging

from .api.cors import EmptyPreflightCORSMiddleware
from .api.errors import install_error_handlers
from .api.routes import router as api_router
import app.api.routes as routes_module

from .services.mqtt_ingest import MqttIngestAdapter
from .services.relay import DoorRelay


logger = logging.getLogger(__name__)


# --- Singletons ---
relay = DoorRelay()
ingest: MqttIngestAdapter | None = None


def get_relay() -> DoorRelay:
    return relay


def build_ingest(loop: asyncio.AbstractEventLoop) -> MqttIngestAdapter:
    return MqttIngestAdapter(
        loop=loop,
        relay=relay,
        host=settings.mqtt_broker_host,
        port=settings.mqtt_broker_port,
        topic=settings.mqtt_topic,
        keepalive=settings.mqtt_keepalive_seconds,
        client_id_prefix=settings.mqtt_client_id_prefix,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        tls=settings.mqtt_tls,
        announce_connection=settings.announce_connection_status,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)

    global ingest
    if settings.mqtt_enabled:
        ingest = build_ingest(asyncio.get_running_loop())
        try:
            ingest.start()
        except Exception as e:
            # Broker trouble must not take the HTTP side down with it
            logger.exception("MQTT ingest failed to start: %s", e)
    else:
        logger.info("MQTT ingest disabled; state changes only via HTTP")

    try:
        yield
    finally:
        if ingest is not None:
            ingest.stop()
            ingest = None

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_relay] = get_relay

app.include_router(api_router, prefix="/api")

if settings.static_dir:
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
