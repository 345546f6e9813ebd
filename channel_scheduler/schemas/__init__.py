"""Pydantic schemas for the REST API and observer messages."""

from channel_scheduler.schemas.channel import (
    BulkUpdateRequest,
    BulkUpdateResponse,
    ChannelCreate,
    ChannelListResponse,
    ChannelResponse,
    ChannelStartRequest,
    ChannelStatusUpdate,
    ChannelUpdate,
    StartChannelResponse,
)
from channel_scheduler.schemas.messages import (
    ChannelsUpdateMessage,
    ClientMessage,
    ErrorMessage,
    NotificationData,
    NotificationMessage,
    PongMessage,
)

__all__ = [
    "BulkUpdateRequest",
    "BulkUpdateResponse",
    "ChannelCreate",
    "ChannelListResponse",
    "ChannelResponse",
    "ChannelStartRequest",
    "ChannelStatusUpdate",
    "ChannelUpdate",
    "ChannelsUpdateMessage",
    "ClientMessage",
    "ErrorMessage",
    "NotificationData",
    "NotificationMessage",
    "PongMessage",
    "StartChannelResponse",
]
