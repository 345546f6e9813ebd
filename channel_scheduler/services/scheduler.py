"""Channel lifecycle scheduler - countdowns, transitions and recurrence restarts.

This is the core of the service. It owns the JobRegistry and drives every
channel through its lifecycle:

    scheduled/stopped ──start / recurrence──▶ running ──countdown 0 / stop──▶ stopped

Scheduling Model:
    - One global heartbeat task calls tick() every second. A tick decrements
      the countdown of every channel holding a countdown job, by exactly one
      second, and stops channels whose countdown reaches zero.
    - One asyncio task per policy-bearing channel sleeps until the next cron
      fire time of its recurrence rule and then force-restarts the channel.
    - All mutations (manual operations, each channel's tick step, recurrence
      restarts) are serialized by a single asyncio.Lock. Combined with the
      registry's install-replaces-prior contract, concurrent starts cannot
      leave duplicate jobs behind.
    - Store writes complete before any job is installed, so no job exists for
      a state that failed to persist.
    - Observers are notified through the announcer after every mutation;
      announcements are fire-and-forget and never block a transition.

Start-up is explicit and two-phase (initialize): load every channel from the
store, then derive its jobs through reschedule_channel(), the single code path
deciding which jobs a channel should have.

Failure Semantics:
    - PersistenceError during a tick: logged, channel skipped, retried next tick
    - Malformed countdown during a tick: treated as expired (channel stopped)
    - PersistenceError / ChannelNotFoundError during a manual operation:
      raised to the caller
    - No error in one channel's processing aborts the other channels
"""

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from channel_scheduler.exceptions import (
    ChannelNotFoundError,
    MalformedCountdownError,
    PersistenceError,
)
from channel_scheduler.models import BulkAction, Channel, ChannelStatus, CountdownKind
from channel_scheduler.services.channel_store import ChannelStore
from channel_scheduler.services.duration_codec import (
    coerce_countdown,
    format_countdown,
    parse_duration,
)
from channel_scheduler.services.job_registry import CountdownJob, JobKind, JobRegistry
from channel_scheduler.services.recurrence import RecurrenceRule, resolve
from channel_scheduler.utils.logging import get_logger

log = get_logger(__name__)


class Announcer(Protocol):
    """Receiver of scheduler announcements (the BroadcastCoordinator)."""

    def notify_changed(self) -> None: ...

    def notify(self, title: str, message: str, severity: str = "info") -> None: ...


def lifecycle_fields(
    status: ChannelStatus,
    duration: str,
    countdown_seconds: int | None = None,
    previous: Channel | None = None,
) -> dict:
    """Countdown columns consistent with ``status``.

    Used by every write that sets a status directly (create, update, status
    change) so persisted rows always satisfy the lifecycle invariants.

    running: the given countdown, else the countdown already running, else the
        nominal duration; kind "ends"
    scheduled: the given countdown, else the pending start countdown; kind
        "start" when a countdown is set
    stopped: no countdown, no kind

    Args:
        status: Status the row will have after the write
        duration: Duration the row will have after the write
        countdown_seconds: Countdown supplied with the write, if any
        previous: The row before the write; its countdown is carried over
            when the status does not change
    """
    if status == ChannelStatus.STOPPED:
        return {"countdown_seconds": None, "countdown_kind": None}

    countdown = countdown_seconds
    if countdown is None and previous is not None and previous.status == status:
        try:
            countdown = coerce_countdown(previous.countdown_seconds)
        except MalformedCountdownError:
            countdown = None

    if status == ChannelStatus.RUNNING:
        return {
            "countdown_seconds": countdown if countdown else parse_duration(duration),
            "countdown_kind": CountdownKind.ENDS,
        }

    return {
        "countdown_seconds": countdown,
        "countdown_kind": CountdownKind.START if countdown is not None else None,
    }


class ChannelScheduler:
    """Owns the job registry and every channel state transition.

    Args:
        store: Store adapter used for all reads and writes
        announcer: Receives notify_changed() after mutations and notify() for
            automatic stop/restart events (optional)
        registry: Job registry (a fresh one by default)
        tick_interval: Seconds between heartbeat ticks
        timezone: Zone name used to evaluate recurrence rules
        clock: Callable returning the current aware datetime (tests)
    """

    def __init__(
        self,
        store: ChannelStore,
        announcer: Announcer | None = None,
        *,
        registry: JobRegistry | None = None,
        tick_interval: float = 1.0,
        timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._announcer = announcer
        self._registry = registry if registry is not None else JobRegistry()
        self._tick_interval = tick_interval
        self._tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._lock = asyncio.Lock()
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Start-up and teardown
    # ------------------------------------------------------------------

    async def initialize(self) -> int:
        """Two-phase start-up: load all channels, then install their jobs.

        Returns:
            Number of channels loaded.

        Raises:
            PersistenceError: If the initial load fails (boot cannot proceed)
        """
        log.info("scheduler_initializing")

        # Phase 1: load
        channels = await self._store.list_channels()

        # Phase 2: derive jobs
        for channel in channels:
            async with self._lock:
                self._install_jobs(channel)

        self._running = True
        log.info(
            "scheduler_initialized",
            channel_count=len(channels),
            job_count=len(self._registry),
        )
        return len(channels)

    async def start(self, heartbeat: bool = True) -> int:
        """Initialize and (optionally) start the heartbeat."""
        count = await self.initialize()
        if heartbeat:
            self.start_heartbeat()
        return count

    def start_heartbeat(self) -> None:
        """Start the global tick loop (no-op if already running)."""
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="scheduler-heartbeat")
        log.info("heartbeat_started", interval_seconds=self._tick_interval)

    async def shutdown(self) -> None:
        """Cancel the heartbeat and every registered job.

        After this returns no scheduler timer fires again.
        """
        log.info("scheduler_shutting_down")
        self._running = False

        pending: list[asyncio.Task] = []
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            pending.append(self._heartbeat_task)
            self._heartbeat_task = None

        for handle in self._registry.cancel_everything():
            if isinstance(handle, asyncio.Task):
                pending.append(handle)

        current = asyncio.current_task()
        pending = [task for task in pending if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("scheduler_stopped", cancelled_tasks=len(pending))

    async def _heartbeat_loop(self) -> None:
        """Call tick() on a fixed, drift-free cadence until cancelled."""
        loop = asyncio.get_running_loop()
        next_tick_at = loop.time() + self._tick_interval

        while True:
            try:
                await asyncio.sleep(max(0.0, next_tick_at - loop.time()))
                next_tick_at += self._tick_interval
                await self.tick()
            except asyncio.CancelledError:
                log.info("heartbeat_cancelled")
                break
            except Exception as e:
                # tick() isolates per-channel errors; this guards the loop itself
                log.error("heartbeat_tick_failed", error=str(e), exc_info=True)

    # ------------------------------------------------------------------
    # Tick processing
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Advance every subscribed countdown by one second."""
        changed = False

        for channel_id in self._registry.channel_ids(JobKind.COUNTDOWN):
            try:
                async with self._lock:
                    changed |= await self._advance_countdown(channel_id)
            except PersistenceError as e:
                log.error(
                    "countdown_tick_skipped",
                    channel_id=channel_id,
                    operation=e.operation,
                    error=str(e),
                )
            except Exception as e:
                log.error(
                    "countdown_tick_failed",
                    channel_id=channel_id,
                    error=str(e),
                    exc_info=True,
                )

        if changed:
            self._notify_changed()

    async def _advance_countdown(self, channel_id: int) -> bool:
        """Decrement one channel's countdown; stop it when it reaches zero.

        Returns:
            True if the channel's persisted state changed.
        """
        # The job may have been cancelled while waiting for the lock
        if not self._registry.has(channel_id, JobKind.COUNTDOWN):
            return False

        channel = await self._store.find_channel(channel_id)
        if channel is None:
            log.warning("countdown_channel_missing", channel_id=channel_id)
            self._registry.cancel_all(channel_id)
            return False

        if channel.status != ChannelStatus.RUNNING:
            # Already stopped (double fire or external edit): drop the job
            self._registry.cancel(channel_id, JobKind.COUNTDOWN)
            return False

        try:
            remaining = coerce_countdown(channel.countdown_seconds)
        except MalformedCountdownError as e:
            log.warning(
                "malformed_countdown_expired",
                channel_id=channel_id,
                value=repr(e.value),
            )
            remaining = None

        if not remaining:
            await self._expire(channel)
            return True

        remaining = max(0, remaining - 1)
        if remaining == 0:
            await self._expire(channel)
            return True

        await self._store.update_countdown(channel_id, remaining)
        return True

    async def _expire(self, channel: Channel) -> None:
        """Countdown reached zero: running → stopped."""
        await self._store.update_status(channel.id, ChannelStatus.STOPPED, None, None)
        self._registry.cancel(channel.id, JobKind.COUNTDOWN)

        log.info("channel_stopped_automatically", channel_id=channel.id, title=channel.title)
        self._announce(
            "Channel Stopped",
            f"{channel.title} finished its scheduled run",
            "warning",
        )

    # ------------------------------------------------------------------
    # Manual operations (request layer)
    # ------------------------------------------------------------------

    async def start_channel(self, channel_id: int, duration: str | None = None) -> int:
        """Start a channel: running, countdown = duration, kind = ends.

        Args:
            channel_id: Channel to start
            duration: Optional duration override ("2h 30m"); defaults to the
                channel's stored duration (or 11h 55m if that is malformed)

        Returns:
            The countdown in seconds.

        Raises:
            ChannelNotFoundError: If the channel does not exist
            PersistenceError: If the status write fails (no jobs are installed)
        """
        async with self._lock:
            channel = await self._store.get_channel(channel_id)
            countdown = parse_duration(duration if duration else channel.duration)

            await self._run(channel, countdown)
            rule = resolve(channel.repeat_policy)
            if rule is not None:
                # Cron rules are wall-clock aligned, replacing keeps the phase
                self._install_recurrence(channel_id, rule)

        log.info(
            "channel_started",
            channel_id=channel_id,
            countdown=format_countdown(countdown),
            repeat_policy=channel.repeat_policy,
        )
        self._notify_changed()
        return countdown

    async def stop_channel(self, channel_id: int) -> None:
        """Stop a channel and disarm both its countdown and recurrence jobs.

        Succeeds when no jobs are registered (channel already stopped).

        Raises:
            ChannelNotFoundError: If the channel does not exist (jobs for the
                id are still dropped)
            PersistenceError: If the status write fails
        """
        async with self._lock:
            changed = await self._store.update_status(
                channel_id, ChannelStatus.STOPPED, None, None
            )
            self._registry.cancel_all(channel_id)
            if not changed:
                raise ChannelNotFoundError(channel_id)

        log.info("channel_stopped", channel_id=channel_id)
        self._notify_changed()

    async def reschedule_channel(self, channel: Channel | int) -> None:
        """Re-derive a channel's jobs from its freshly persisted record.

        Called after create, update and bulk edits. The record is reloaded
        before any job is touched, then all existing jobs for the id are
        replaced; a channel that no longer exists keeps no jobs.

        Raises:
            PersistenceError: If the record cannot be reloaded (existing jobs
                are left in place)
        """
        channel_id = channel if isinstance(channel, int) else channel.id

        async with self._lock:
            fresh = await self._store.find_channel(channel_id)
            self._registry.cancel_all(channel_id)
            if fresh is None:
                log.warning("reschedule_channel_missing", channel_id=channel_id)
            else:
                self._install_jobs(fresh)

        self._notify_changed()

    async def delete_channel(self, channel_id: int) -> None:
        """Delete a channel and cancel every job registered for it.

        Raises:
            ChannelNotFoundError: If nothing was deleted
            PersistenceError: If the delete fails
        """
        async with self._lock:
            changed = await self._store.delete_channel(channel_id)
            cancelled = self._registry.cancel_all(channel_id)
            if not changed:
                raise ChannelNotFoundError(channel_id)

        log.info("channel_removed", channel_id=channel_id, cancelled_jobs=cancelled)
        self._notify_changed()

    async def bulk_update(self, channel_ids: Iterable[int], action: BulkAction | str) -> int:
        """Apply start, stop or delete to several channels.

        Unknown ids are skipped. Observers receive one coalesced push.

        Returns:
            Number of channels changed.

        Raises:
            ValueError: If the action is not start, stop or delete
            PersistenceError: If a store write fails
        """
        action = BulkAction(action)
        changed = 0

        for channel_id in dict.fromkeys(channel_ids):
            try:
                if action is BulkAction.START:
                    await self.start_channel(channel_id)
                elif action is BulkAction.STOP:
                    await self.stop_channel(channel_id)
                else:
                    await self.delete_channel(channel_id)
            except ChannelNotFoundError:
                log.warning("bulk_update_channel_missing", channel_id=channel_id, action=action.value)
                continue
            changed += 1

        log.info("bulk_update_completed", action=action.value, changed=changed)
        return changed

    # ------------------------------------------------------------------
    # Recurrence
    # ------------------------------------------------------------------

    async def fire_recurrence(self, channel_id: int) -> None:
        """Recurrence rule matched: force-restart the channel.

        Always restarts with the channel's nominal duration, overwriting any
        in-flight countdown. The recurrence job that fired stays installed.
        Errors are logged; the recurrence loop keeps running.
        """
        try:
            async with self._lock:
                channel = await self._store.find_channel(channel_id)
                if channel is None:
                    # Deleted without cancelling its jobs: drop them, including this one
                    log.warning("recurrence_channel_missing", channel_id=channel_id)
                    self._registry.cancel_all(channel_id)
                    return

                countdown = channel.duration_seconds
                await self._run(channel, countdown)
        except (PersistenceError, ChannelNotFoundError) as e:
            log.error("recurrence_restart_failed", channel_id=channel_id, error=str(e))
            return

        log.info(
            "channel_restarted",
            channel_id=channel_id,
            countdown=format_countdown(countdown),
            repeat_policy=channel.repeat_policy,
        )
        self._announce(
            "Channel Restarted",
            f"{channel.title} restarted ({channel.repeat_policy})",
            "info",
        )
        self._notify_changed()

    async def _recurrence_loop(self, channel_id: int, rule: RecurrenceRule) -> None:
        """Sleep until each cron fire time, then restart the channel."""
        while True:
            now = self._clock()
            delay = rule.seconds_until_next(now)
            log.debug(
                "recurrence_waiting",
                channel_id=channel_id,
                policy=rule.policy,
                next_fire=rule.next_fire(now).isoformat(),
            )
            await asyncio.sleep(delay)
            await self.fire_recurrence(channel_id)
            # Step past the fire instant so a fast clock cannot fire twice
            await asyncio.sleep(1)

    def next_recurrence(self, channel: Channel) -> datetime | None:
        """Next wall-clock restart time for a channel, None without a rule."""
        rule = resolve(channel.repeat_policy)
        if rule is None:
            return None
        return rule.next_fire(self._clock())

    # ------------------------------------------------------------------
    # Helpers (callers hold the lock)
    # ------------------------------------------------------------------

    async def _run(self, channel: Channel, countdown: int) -> None:
        """Persist running/countdown, then subscribe the channel to the heartbeat."""
        changed = await self._store.update_status(
            channel.id, ChannelStatus.RUNNING, countdown, CountdownKind.ENDS
        )
        if not changed:
            raise ChannelNotFoundError(channel.id)
        self._registry.install(channel.id, JobKind.COUNTDOWN, CountdownJob(channel.id))

    def _install_jobs(self, channel: Channel) -> None:
        """Decide which jobs ``channel`` should have and install them."""
        if channel.status == ChannelStatus.RUNNING:
            # A running row without a countdown is expired on the next tick
            self._registry.install(channel.id, JobKind.COUNTDOWN, CountdownJob(channel.id))

        rule = resolve(channel.repeat_policy)
        if rule is not None:
            self._install_recurrence(channel.id, rule)

    def _install_recurrence(self, channel_id: int, rule: RecurrenceRule) -> None:
        task = asyncio.create_task(
            self._recurrence_loop(channel_id, rule),
            name=f"recurrence-{channel_id}",
        )
        self._registry.install(channel_id, JobKind.RECURRENCE, task)
        log.info("recurrence_scheduled", channel_id=channel_id, policy=rule.policy)

    def _notify_changed(self) -> None:
        if self._announcer is not None:
            self._announcer.notify_changed()

    def _announce(self, title: str, message: str, severity: str) -> None:
        if self._announcer is not None:
            self._announcer.notify(title, message, severity)
