"""Broadcast coordinator - snapshot pushes to subscribed observers.

Every scheduler mutation ends with notify_changed(). Bulk operations mutate
many channels in a row, so pushes are coalesced: the first notification opens
a short window (100 ms by default) and a single snapshot of all channels is
pushed when it closes. Notifications arriving after the window closed start a
new one.

Architecture:
- Observers are any object with ``async send_json(data)`` (FastAPI WebSocket)
- Pushes are fire-and-forget tasks; a mutation never waits for observers
- A failing observer is dropped from the set and logged, others are unaffected
- snapshot() is ordered by sequence_number ascending (presentation contract)
"""

import asyncio
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from channel_scheduler.constants import MESSAGE_PING, MESSAGE_REQUEST_UPDATE
from channel_scheduler.exceptions import PersistenceError
from channel_scheduler.schemas.channel import ChannelResponse
from channel_scheduler.schemas.messages import (
    ChannelsUpdateMessage,
    ClientMessage,
    ErrorMessage,
    NotificationData,
    NotificationMessage,
    PongMessage,
)
from channel_scheduler.services.channel_store import ChannelStore

log = structlog.get_logger()


class Observer(Protocol):
    """A subscriber receiving JSON pushes."""

    async def send_json(self, data: Any) -> None: ...


class BroadcastCoordinator:
    """Pushes channel snapshots and notifications to observers.

    Args:
        store: Source of the channel snapshot
        coalesce_seconds: Window in which notify_changed() calls collapse into one push
    """

    def __init__(self, store: ChannelStore, coalesce_seconds: float = 0.1):
        self._store = store
        self._coalesce_seconds = coalesce_seconds
        self._observers: set[Observer] = set()
        self._pending_push: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self.push_count = 0

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def snapshot(self) -> list[dict[str, Any]]:
        """All channels ordered by sequence_number, serialized for observers."""
        channels = await self._store.list_channels()
        ordered = sorted(channels, key=lambda channel: (channel.sequence_number, channel.id))
        return [ChannelResponse.model_validate(channel).model_dump(mode="json") for channel in ordered]

    def notify_changed(self) -> None:
        """Schedule a coalesced snapshot push (no-op if one is already pending)."""
        if self._pending_push is not None and not self._pending_push.done():
            return
        self._pending_push = self._spawn(self._coalesced_push())

    def notify(self, title: str, message: str, severity: str = "info") -> None:
        """Broadcast a one-off notification (fire and forget)."""
        payload = NotificationMessage(
            data=NotificationData(title=title, message=message, severity=severity)
        ).model_dump(mode="json")
        self._spawn(self.broadcast(payload))

    async def add_observer(self, observer: Observer) -> None:
        """Send the observer one snapshot, then add it to the broadcast set."""
        await self.send_snapshot(observer)
        self._observers.add(observer)
        log.info("observer_connected", observer_count=len(self._observers))

    def remove_observer(self, observer: Observer) -> None:
        """Remove an observer (no-op if it is not registered)."""
        if observer in self._observers:
            self._observers.discard(observer)
            log.info("observer_disconnected", observer_count=len(self._observers))

    async def send_snapshot(self, observer: Observer) -> None:
        """Send a snapshot to one observer, or an error message if the store fails."""
        try:
            data = await self.snapshot()
        except PersistenceError as e:
            log.error("snapshot_failed", error=str(e))
            await observer.send_json(
                ErrorMessage(message="Failed to fetch channels").model_dump(mode="json")
            )
            return
        await observer.send_json(ChannelsUpdateMessage(data=data).model_dump(mode="json"))

    async def handle_client_message(self, observer: Observer, data: Any) -> None:
        """React to a control message from an observer (ping, request_update)."""
        try:
            message = ClientMessage.model_validate(data)
        except ValidationError:
            log.warning("observer_message_invalid", data=str(data)[:200])
            return

        if message.type == MESSAGE_PING:
            await observer.send_json(PongMessage().model_dump(mode="json"))
        elif message.type == MESSAGE_REQUEST_UPDATE:
            await self.send_snapshot(observer)
        else:
            log.info("observer_message_unknown", message_type=message.type)

    async def broadcast(self, payload: dict[str, Any]) -> None:
        """Send ``payload`` to every observer, dropping observers that fail."""
        observers = list(self._observers)
        if not observers:
            return

        results = await asyncio.gather(
            *(observer.send_json(payload) for observer in observers),
            return_exceptions=True,
        )
        for observer, result in zip(observers, results):
            if isinstance(result, Exception):
                log.warning("observer_send_failed", error=str(result))
                self.remove_observer(observer)

    async def push_snapshot(self) -> None:
        """Push a fresh snapshot to all observers now."""
        if not self._observers:
            return
        try:
            data = await self.snapshot()
        except PersistenceError as e:
            log.error("broadcast_snapshot_failed", error=str(e))
            return

        self.push_count += 1
        await self.broadcast(ChannelsUpdateMessage(data=data).model_dump(mode="json"))

    async def close(self) -> None:
        """Cancel pending pushes (shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending_push = None
        log.info("broadcast_closed", observer_count=len(self._observers))

    async def _coalesced_push(self) -> None:
        await asyncio.sleep(self._coalesce_seconds)
        # Window closed: later notifications schedule a new push
        self._pending_push = None
        await self.push_snapshot()

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
