from __future__ import annotations
from pydantic import BaseModel, ConfigDict
from typing import Any, Optional


class WriteRequest(BaseModel):
    """Every accepted write body: ``{isOpen, status?}`` or ``{payload|message|status}``."""

    model_config = ConfigDict(extra="ignore")

    isOpen: Optional[bool] = None
    status: Optional[str] = None
    payload: Optional[Any] = None
    message: Optional[Any] = None
    topic: Optional[str] = None  # sent by broker webhooks, informational only


class DoorStateOut(BaseModel):
    isOpen: bool
    status: str
    lastUpdated: str


class WriteResponse(BaseModel):
    success: bool = True
    state: DoorStateOut


class WebhookResponse(WriteResponse):
    message: str = "State updated"
