"""Channel REST routes.

This module provides the FastAPI routes of the dashboard:
- GET    /api/channels                 - List channels (sequence order)
- GET    /api/channels/{id}            - Get one channel
- POST   /api/channels                 - Create a channel
- PUT    /api/channels/{id}            - Update a channel
- DELETE /api/channels/{id}            - Delete a channel
- PATCH  /api/channels/{id}/status     - Set status (running/stopped/scheduled)
- POST   /api/channels/{id}/start      - Manual start (optional duration override)
- POST   /api/channels/{id}/stop       - Manual stop
- POST   /api/channels/bulk/update     - Bulk start/stop/delete

Pattern:
- Persist through the ChannelStore / ChannelScheduler (never touch sessions here)
- Re-derive jobs with reschedule_channel() after create and update
- Domain errors are mapped to HTTPException by _http_errors()
"""

import secrets
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi import APIRouter, HTTPException, Request, Response, status

from channel_scheduler.exceptions import (
    ChannelNotFoundError,
    MalformedCountdownError,
    MalformedDurationError,
    PersistenceError,
)
from channel_scheduler.models import Channel, ChannelStatus
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
from channel_scheduler.services.broadcast import BroadcastCoordinator
from channel_scheduler.services.channel_store import ChannelStore
from channel_scheduler.services.duration_codec import (
    format_countdown,
    parse_countdown,
    parse_duration_strict,
)
from channel_scheduler.services.scheduler import ChannelScheduler, lifecycle_fields

log = structlog.get_logger()
router = APIRouter(prefix="/api/channels", tags=["channels"])


@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate domain errors raised inside a route into HTTP errors.

    ChannelNotFoundError → 404
    MalformedCountdownError / MalformedDurationError → 400
    PersistenceError → 500
    """
    try:
        yield
    except ChannelNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (MalformedCountdownError, MalformedDurationError) as e:
        log.warning("request_rejected", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database operation failed",
        ) from e


def _store(request: Request) -> ChannelStore:
    return request.app.state.store


def _scheduler(request: Request) -> ChannelScheduler:
    return request.app.state.scheduler


def _broadcaster(request: Request) -> BroadcastCoordinator:
    return request.app.state.broadcaster


def _to_response(channel: Channel) -> ChannelResponse:
    return ChannelResponse.model_validate(channel)


@router.get("", response_model=ChannelListResponse)
async def list_channels(request: Request) -> ChannelListResponse:
    """List all channels ordered by sequence_number."""
    with _http_errors():
        channels = await _store(request).list_channels()
    return ChannelListResponse(
        data=[_to_response(channel) for channel in channels],
        count=len(channels),
    )


@router.post("/bulk/update", response_model=BulkUpdateResponse)
async def bulk_update(body: BulkUpdateRequest, request: Request) -> BulkUpdateResponse:
    """Start, stop or delete several channels; unknown ids are skipped.

    Observers receive a single coalesced snapshot for the whole batch.
    """
    with _http_errors():
        changes = await _scheduler(request).bulk_update(body.channel_ids, body.action)
    return BulkUpdateResponse(action=body.action, changes=changes)


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel(channel_id: int, request: Request) -> ChannelResponse:
    """Get one channel.

    Returns:
        200 OK: Channel
        404 Not Found: Unknown id
    """
    with _http_errors():
        channel = await _store(request).get_channel(channel_id)
    return _to_response(channel)


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(body: ChannelCreate, request: Request) -> ChannelResponse:
    """Create a channel and install its jobs.

    A stream key is generated when none is supplied. The countdown columns
    follow the status: a running channel counts down to its end (its
    nominal duration unless a countdown is given), a scheduled channel's
    countdown counts down to its start and a stopped channel has none.

    Returns:
        201 Created: Channel
        400 Bad Request: Countdown is not HH:MM:SS
    """
    fields = body.model_dump(exclude={"countdown"})
    if not fields["stream_key"]:
        fields["stream_key"] = f"{body.name}-live-key-{secrets.token_hex(4)}"

    store = _store(request)
    with _http_errors():
        countdown = parse_countdown(body.countdown) if body.countdown is not None else None
        fields.update(lifecycle_fields(body.status, body.duration, countdown))

        channel = await store.create_channel(**fields)
        await _scheduler(request).reschedule_channel(channel)
        channel = await store.get_channel(channel.id)

    return _to_response(channel)


@router.put("/{channel_id}", response_model=ChannelResponse)
async def update_channel(
    channel_id: int, body: ChannelUpdate, request: Request
) -> ChannelResponse:
    """Apply a partial update, then re-derive the channel's jobs.

    The countdown columns are recomputed from the resulting status the same
    way create does. An unchanged status keeps its countdown unless the
    request sets or clears it.

    Returns:
        200 OK: Updated channel
        400 Bad Request: Countdown is not HH:MM:SS
        404 Not Found: Unknown id
    """
    # Only the countdown is nullable
    fields = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field == "countdown"
    }

    store = _store(request)
    with _http_errors():
        current = await store.get_channel(channel_id)

        countdown_sent = "countdown" in fields
        countdown = fields.pop("countdown", None)
        if countdown is not None:
            countdown = parse_countdown(countdown)

        fields.update(
            lifecycle_fields(
                fields.get("status", current.status),
                fields.get("duration", current.duration),
                countdown,
                previous=None if countdown_sent else current,
            )
        )

        await store.update_channel(channel_id, **fields)
        await _scheduler(request).reschedule_channel(channel_id)
        channel = await store.get_channel(channel_id)

    return _to_response(channel)


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_channel(channel_id: int, request: Request) -> Response:
    """Delete a channel and cancel all of its jobs.

    Returns:
        204 No Content: Deleted
        404 Not Found: Unknown id
    """
    with _http_errors():
        await _scheduler(request).delete_channel(channel_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{channel_id}/status", response_model=ChannelResponse)
async def update_status(
    channel_id: int, body: ChannelStatusUpdate, request: Request
) -> ChannelResponse:
    """Set a channel's status.

    running → manual start with the stored duration
    stopped → manual stop (disarms recurrence)
    scheduled → persist status and optional start countdown, then reschedule

    Returns:
        200 OK: Updated channel
        400 Bad Request: Countdown is not HH:MM:SS
        404 Not Found: Unknown id
    """
    store = _store(request)
    scheduler = _scheduler(request)

    with _http_errors():
        if body.status == ChannelStatus.RUNNING:
            await scheduler.start_channel(channel_id)
        elif body.status == ChannelStatus.STOPPED:
            await scheduler.stop_channel(channel_id)
        else:
            countdown = parse_countdown(body.countdown) if body.countdown is not None else None
            current = await store.get_channel(channel_id)
            await store.update_channel(
                channel_id,
                status=ChannelStatus.SCHEDULED,
                **lifecycle_fields(ChannelStatus.SCHEDULED, current.duration, countdown),
            )
            await scheduler.reschedule_channel(channel_id)

        channel = await store.get_channel(channel_id)

    log.info("channel_status_updated", channel_id=channel_id, status=channel.status.value)
    _broadcaster(request).notify(
        "Status Updated",
        f"{channel.title} is now {channel.status.value}",
        "success",
    )
    return _to_response(channel)


@router.post("/{channel_id}/start", response_model=StartChannelResponse)
async def start_channel(
    channel_id: int, request: Request, body: ChannelStartRequest | None = None
) -> StartChannelResponse:
    """Start a channel now.

    Returns:
        200 OK: Countdown the channel is now running with
        400 Bad Request: Duration override is not "<int>h <int>m"
        404 Not Found: Unknown id
    """
    duration = body.duration if body is not None and body.duration else None

    with _http_errors():
        if duration is not None:
            parse_duration_strict(duration)
        countdown = await _scheduler(request).start_channel(channel_id, duration)

    return StartChannelResponse(
        id=channel_id,
        countdown_seconds=countdown,
        countdown=format_countdown(countdown),
    )


@router.post("/{channel_id}/stop", response_model=ChannelResponse)
async def stop_channel(channel_id: int, request: Request) -> ChannelResponse:
    """Stop a channel and disarm its countdown and recurrence jobs.

    Returns:
        200 OK: Stopped channel
        404 Not Found: Unknown id
    """
    with _http_errors():
        await _scheduler(request).stop_channel(channel_id)
        channel = await _store(request).get_channel(channel_id)
    return _to_response(channel)
