"""Job registry - cancellable timer handles keyed by (channel id, job kind).

The registry is owned by the ChannelScheduler. It guarantees at most one
active job per (channel, kind): installing a job cancels the previous handle
for the same key first. That replacement is the only mechanism that prevents
duplicate timers across reschedules.

Handles:
    Any object with a ``cancel()`` method. The scheduler installs:
    - CountdownJob: a subscription of one channel to the global heartbeat
    - asyncio.Task: the per-channel recurrence loop
"""

import enum
from typing import Any, Protocol

from channel_scheduler.utils.logging import get_logger

log = get_logger(__name__)


class JobKind(enum.Enum):
    """Kinds of per-channel jobs."""

    COUNTDOWN = "countdown"
    RECURRENCE = "recurrence"


class JobHandle(Protocol):
    """A cancellable timer handle."""

    def cancel(self) -> Any: ...


class CountdownJob:
    """Heartbeat subscription for one running channel.

    The heartbeat decrements countdowns only for channels holding an active
    CountdownJob in the registry. Cancelling the job unsubscribes the channel.
    """

    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        self._cancelled = False

    def cancel(self) -> bool:
        """Cancel the subscription. Returns False if it was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CountdownJob(channel_id={self.channel_id}, {state})>"


class JobRegistry:
    """In-memory table mapping (channel_id, JobKind) → handle."""

    def __init__(self) -> None:
        self._jobs: dict[tuple[int, JobKind], JobHandle] = {}

    def install(self, channel_id: int, kind: JobKind, handle: JobHandle) -> None:
        """Store ``handle``, cancelling any prior handle for the same key first."""
        key = (channel_id, kind)
        previous = self._jobs.pop(key, None)
        if previous is not None and previous is not handle:
            previous.cancel()
            log.debug("job_replaced", channel_id=channel_id, kind=kind.value)
        self._jobs[key] = handle
        log.debug("job_installed", channel_id=channel_id, kind=kind.value)

    def cancel(self, channel_id: int, kind: JobKind) -> bool:
        """Cancel and remove the job for (channel_id, kind).

        Returns:
            True if a job was removed, False if none was registered (no-op).
        """
        handle = self._jobs.pop((channel_id, kind), None)
        if handle is None:
            return False
        handle.cancel()
        log.debug("job_cancelled", channel_id=channel_id, kind=kind.value)
        return True

    def cancel_all(self, channel_id: int) -> int:
        """Cancel every job kind registered for ``channel_id``.

        Returns:
            Number of jobs cancelled.
        """
        return sum(1 for kind in JobKind if self.cancel(channel_id, kind))

    def cancel_everything(self) -> list[JobHandle]:
        """Cancel all outstanding jobs (process shutdown).

        Returns:
            The cancelled handles, so callers can await cancelled tasks.
        """
        handles = list(self._jobs.values())
        self._jobs.clear()
        for handle in handles:
            handle.cancel()
        if handles:
            log.info("all_jobs_cancelled", count=len(handles))
        return handles

    def get(self, channel_id: int, kind: JobKind) -> JobHandle | None:
        return self._jobs.get((channel_id, kind))

    def has(self, channel_id: int, kind: JobKind) -> bool:
        return (channel_id, kind) in self._jobs

    def kinds_for(self, channel_id: int) -> set[JobKind]:
        """Job kinds currently registered for ``channel_id``."""
        return {kind for (job_channel_id, kind) in self._jobs if job_channel_id == channel_id}

    def channel_ids(self, kind: JobKind) -> list[int]:
        """Channel ids holding a job of ``kind``, in ascending order."""
        return sorted(job_channel_id for (job_channel_id, job_kind) in self._jobs if job_kind == kind)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, key: object) -> bool:
        return key in self._jobs
