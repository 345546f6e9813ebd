"""Channel store - the scheduler's only access path to durable storage.

Architecture:
- One short transaction per call (open session → query/update → commit → close)
- Returned Channel instances are detached (expire_on_commit=False) and safe to
  read after the session closed
- Every SQLAlchemy error is wrapped in PersistenceError, so the scheduler and
  request layer never handle database exception types directly
- updated_at is set on every mutation
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from channel_scheduler.exceptions import ChannelNotFoundError, PersistenceError
from channel_scheduler.models import Channel, ChannelStatus, CountdownKind, utcnow

log = structlog.get_logger()

# Columns callers may set through create_channel / update_channel
EDITABLE_FIELDS = frozenset(
    {
        "sequence_number",
        "name",
        "title",
        "source_file",
        "stream_key",
        "duration",
        "repeat_policy",
        "status",
        "countdown_seconds",
        "countdown_kind",
    }
)


class ChannelStore:
    """Async query/patch operations over the channels table.

    Args:
        session_factory: async_sessionmaker producing AsyncSession instances
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(
        self, operation: str, channel_id: int | None = None
    ) -> AsyncIterator[AsyncSession]:
        """Open a session, commit on success, wrap database errors."""
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except SQLAlchemyError as e:
            log.error(
                "store_operation_failed",
                operation=operation,
                channel_id=channel_id,
                error=str(e),
            )
            raise PersistenceError(operation, str(e), channel_id=channel_id) from e

    async def list_channels(self, status: ChannelStatus | None = None) -> list[Channel]:
        """List channels ordered by sequence_number (then id).

        Args:
            status: Optional status filter
        """
        query = select(Channel).order_by(Channel.sequence_number.asc(), Channel.id.asc())
        if status is not None:
            query = query.where(Channel.status == status)

        async with self._transaction("list_channels") as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_channel(self, channel_id: int) -> Channel | None:
        """Get a channel by id, None if it does not exist."""
        async with self._transaction("get_channel", channel_id) as session:
            return await session.get(Channel, channel_id)

    async def get_channel(self, channel_id: int) -> Channel:
        """Get a channel by id.

        Raises:
            ChannelNotFoundError: If the id does not exist
            PersistenceError: If the query fails
        """
        channel = await self.find_channel(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        return channel

    async def count_channels(self) -> int:
        async with self._transaction("count_channels") as session:
            result = await session.execute(select(func.count()).select_from(Channel))
            return int(result.scalar_one())

    async def create_channel(self, **fields: Any) -> Channel:
        """Insert a channel and return it with its store-assigned id.

        Raises:
            ValueError: If an unknown field is passed
            PersistenceError: If the insert fails
        """
        _check_fields(fields)
        channel = Channel(**fields)

        async with self._transaction("create_channel") as session:
            session.add(channel)
            await session.flush()
            await session.refresh(channel)

        log.info("channel_created", channel_id=channel.id, title=channel.title)
        return channel

    async def update_channel(self, channel_id: int, **fields: Any) -> Channel:
        """Apply a partial update and return the refreshed channel.

        Raises:
            ChannelNotFoundError: If the id does not exist
            PersistenceError: If the update fails
        """
        _check_fields(fields)

        async with self._transaction("update_channel", channel_id) as session:
            channel = await session.get(Channel, channel_id)
            if channel is None:
                raise ChannelNotFoundError(channel_id)
            for field, value in fields.items():
                setattr(channel, field, value)
            channel.updated_at = utcnow()
            await session.flush()
            await session.refresh(channel)

        log.info("channel_updated", channel_id=channel_id, fields=sorted(fields))
        return channel

    async def update_status(
        self,
        channel_id: int,
        status: ChannelStatus,
        countdown_seconds: int | None = None,
        countdown_kind: CountdownKind | None = None,
    ) -> int:
        """Set status, countdown and countdown kind in one statement.

        Returns:
            Number of rows changed (0 when the id does not exist)
        """
        statement = (
            update(Channel)
            .where(Channel.id == channel_id)
            .values(
                status=status,
                countdown_seconds=countdown_seconds,
                countdown_kind=countdown_kind,
                updated_at=utcnow(),
            )
        )
        async with self._transaction("update_status", channel_id) as session:
            result = await session.execute(statement)
            return result.rowcount or 0

    async def update_countdown(self, channel_id: int, countdown_seconds: int) -> int:
        """Persist a new countdown value (tick path).

        Returns:
            Number of rows changed
        """
        statement = (
            update(Channel)
            .where(Channel.id == channel_id)
            .values(countdown_seconds=countdown_seconds, updated_at=utcnow())
        )
        async with self._transaction("update_countdown", channel_id) as session:
            result = await session.execute(statement)
            return result.rowcount or 0

    async def delete_channel(self, channel_id: int) -> int:
        """Delete a channel.

        Returns:
            Number of rows deleted (0 when the id does not exist)
        """
        async with self._transaction("delete_channel", channel_id) as session:
            result = await session.execute(delete(Channel).where(Channel.id == channel_id))
            changed = result.rowcount or 0

        if changed:
            log.info("channel_deleted", channel_id=channel_id)
        return changed


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown channel fields: {sorted(unknown)}")
