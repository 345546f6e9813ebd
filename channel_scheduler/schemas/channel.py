"""Pydantic schemas for Channel model validation and serialization.

This module defines Pydantic v2 schemas for creating, updating and returning
Channel records through the REST API and the observer snapshots.

Schema Naming Convention:
    - ChannelCreate: For POST requests (creating new channels)
    - ChannelUpdate: For PUT requests (fields omitted are left unchanged)
    - ChannelStatusUpdate: For PATCH /status requests
    - ChannelStartRequest: Optional duration override for manual starts
    - BulkUpdateRequest: For bulk start/stop/delete
    - ChannelResponse: For API responses and observer snapshots

Repeat policies are normalized to their canonical name on input. Unknown
policy names are accepted and stored unchanged; the scheduler treats them as
"no recurrence".
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from channel_scheduler.constants import DEFAULT_DURATION, REPEAT_POLICY_NONE
from channel_scheduler.exceptions import InvalidRecurrencePolicyError, MalformedCountdownError
from channel_scheduler.models import BulkAction, ChannelStatus, CountdownKind
from channel_scheduler.services.duration_codec import (
    coerce_countdown,
    format_countdown,
    parse_duration,
)
from channel_scheduler.services.recurrence import normalize_policy


def _normalize_repeat_policy(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return normalize_policy(value)
    except InvalidRecurrencePolicyError:
        return value


class ChannelCreate(BaseModel):
    """Schema for creating a new channel.

    Used in POST /api/channels. New channels start as "scheduled" with no
    countdown unless a status/countdown is supplied. The countdown kind is
    derived from the status, never taken from the client.
    """

    sequence_number: int = Field(..., ge=0, description="Display ordering", examples=[1])
    name: str = Field(..., min_length=1, max_length=100, examples=["d2kg"])
    title: str = Field(..., min_length=1, max_length=255, examples=["D2KG LIVE 1"])
    source_file: str = Field(
        ..., min_length=1, max_length=255, examples=["Looping Video Live 1.mp4"]
    )
    stream_key: str | None = Field(
        default=None,
        max_length=255,
        description="Opaque stream credential. Generated when omitted.",
    )
    duration: str = Field(
        default=DEFAULT_DURATION,
        max_length=20,
        description="Nominal run length, e.g. '11h 55m'",
    )
    repeat_policy: str = Field(
        default=REPEAT_POLICY_NONE,
        max_length=50,
        description="daily, hourly, every 30 minutes, weekly or none",
    )
    status: ChannelStatus = Field(default=ChannelStatus.SCHEDULED)
    countdown: str | None = Field(
        default=None,
        description="Initial countdown as HH:MM:SS",
        examples=["00:30:00"],
    )

    @field_validator("repeat_policy")
    @classmethod
    def _normalize_policy(cls, value: str | None) -> str | None:
        return _normalize_repeat_policy(value)


class ChannelUpdate(BaseModel):
    """Schema for updating an existing channel.

    Used in PUT /api/channels/{id}. Only fields present in the request body
    are written (serialize with exclude_unset=True).
    """

    sequence_number: int | None = Field(default=None, ge=0)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    source_file: str | None = Field(default=None, min_length=1, max_length=255)
    stream_key: str | None = Field(default=None, max_length=255)
    duration: str | None = Field(default=None, max_length=20)
    repeat_policy: str | None = Field(default=None, max_length=50)
    status: ChannelStatus | None = Field(default=None)
    countdown: str | None = Field(default=None, description="HH:MM:SS, null clears it")

    @field_validator("repeat_policy")
    @classmethod
    def _normalize_policy(cls, value: str | None) -> str | None:
        return _normalize_repeat_policy(value)


class ChannelStatusUpdate(BaseModel):
    """Schema for PATCH /api/channels/{id}/status."""

    status: ChannelStatus
    countdown: str | None = Field(
        default=None,
        description="HH:MM:SS start countdown (scheduled only)",
    )


class ChannelStartRequest(BaseModel):
    """Optional body of POST /api/channels/{id}/start."""

    duration: str | None = Field(
        default=None,
        max_length=20,
        description="Duration override, e.g. '0h 30m'. Defaults to the stored duration.",
    )


class BulkUpdateRequest(BaseModel):
    """Schema for POST /api/channels/bulk/update."""

    channel_ids: list[int] = Field(..., min_length=1)
    action: BulkAction


class ChannelResponse(BaseModel):
    """Schema for Channel API responses and observer snapshots.

    Adds the derived duration_seconds and the countdown formatted as
    HH:MM:SS next to the raw countdown_seconds.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    sequence_number: int
    name: str
    title: str
    source_file: str
    stream_key: str
    duration: str
    repeat_policy: str
    status: ChannelStatus
    countdown_seconds: int | None
    countdown_kind: CountdownKind | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("countdown_seconds", mode="before")
    @classmethod
    def _legacy_countdown(cls, value: object) -> object:
        # Legacy rows may still hold "HH:MM:SS" text
        try:
            return coerce_countdown(value)
        except MalformedCountdownError:
            return None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_seconds(self) -> int:
        return parse_duration(self.duration)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def countdown(self) -> str | None:
        if self.countdown_seconds is None:
            return None
        return format_countdown(self.countdown_seconds)


class ChannelListResponse(BaseModel):
    """Schema for GET /api/channels."""

    data: list[ChannelResponse]
    count: int


class StartChannelResponse(BaseModel):
    """Schema for a successful manual start."""

    id: int
    countdown_seconds: int
    countdown: str


class BulkUpdateResponse(BaseModel):
    """Schema for bulk operation results."""

    action: BulkAction
    changes: int
