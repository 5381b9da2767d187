from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from ..core.config import settings
from ..services.relay import DoorRelay
from ..services.sse import stream_events
from .schemas import WebhookResponse, WriteRequest, WriteResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# main.py wires the real relay in via app.dependency_overrides.
def get_relay() -> DoorRelay:  # overridden in main
    raise RuntimeError("Relay dependency not configured")


STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/door/status")
@router.get("/status")
async def read_state(relay: DoorRelay = Depends(get_relay)):
    return relay.current().to_dict()


@router.get("/door/stream")
async def subscribe_stream(request: Request, relay: DoorRelay = Depends(get_relay)):
    events = stream_events(
        relay,
        request,
        keepalive_seconds=settings.stream_keepalive_seconds,
        queue_size=settings.stream_queue_size,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=STREAM_HEADERS)


@router.post("/door/test", response_model=WriteResponse)
@router.post("/status", response_model=WriteResponse)
async def force_state(req: WriteRequest, relay: DoorRelay = Depends(get_relay)):
    state = relay.submit(req.model_dump())
    return {"success": True, "state": state.to_dict()}


@router.post("/webhook", response_model=WebhookResponse)
async def broker_webhook(req: WriteRequest, relay: DoorRelay = Depends(get_relay)):
    logger.info("Webhook received: topic=%s", req.topic)
    state = relay.submit(req.model_dump())
    return {"success": True, "message": "State updated", "state": state.to_dict()}


@router.options("/door/status")
@router.options("/door/stream")
@router.options("/door/test")
@router.options("/status")
@router.options("/webhook")
async def preflight():
    return Response(status_code=200)
