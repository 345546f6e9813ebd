"""Observer message schemas.

Messages pushed to WebSocket observers by the BroadcastCoordinator, and the
control messages observers may send back.

Server → observer:
- channels_update: full snapshot of all channels, ordered by sequence_number
- notification: one-off alert (automatic stop/restart, status changes)
- pong: heartbeat reply
- error: snapshot could not be produced

Observer → server:
- request_update: ask for an immediate snapshot
- ping: liveness check
"""

import time
from typing import Any, Literal

from pydantic import BaseModel, Field

from channel_scheduler.constants import (
    MESSAGE_CHANNELS_UPDATE,
    MESSAGE_ERROR,
    MESSAGE_NOTIFICATION,
    MESSAGE_PONG,
)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ChannelsUpdateMessage(BaseModel):
    """Snapshot push."""

    type: Literal["channels_update"] = MESSAGE_CHANNELS_UPDATE
    data: list[dict[str, Any]]
    timestamp: int = Field(default_factory=now_ms)


class NotificationData(BaseModel):
    title: str
    message: str
    severity: Literal["info", "success", "warning", "error"] = "info"
    timestamp: int = Field(default_factory=now_ms)


class NotificationMessage(BaseModel):
    """One-off alert push."""

    type: Literal["notification"] = MESSAGE_NOTIFICATION
    data: NotificationData


class PongMessage(BaseModel):
    type: Literal["pong"] = MESSAGE_PONG
    timestamp: int = Field(default_factory=now_ms)


class ErrorMessage(BaseModel):
    type: Literal["error"] = MESSAGE_ERROR
    message: str
    timestamp: int = Field(default_factory=now_ms)


class ClientMessage(BaseModel):
    """Control message received from an observer. Unknown types are ignored."""

    type: str
