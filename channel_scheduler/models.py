"""SQLAlchemy 2.0 ORM models.

This module contains the SQLAlchemy model for live channels.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Countdown Storage:
    Countdowns are stored as integer seconds in `countdown_seconds`. The
    "HH:MM:SS" form is a presentation concern (see duration_codec).

    NEVER expose stream_key in __repr__ or log statements.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from channel_scheduler.constants import DEFAULT_DURATION, REPEAT_POLICY_NONE
from channel_scheduler.services.duration_codec import parse_duration


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class ChannelStatus(enum.Enum):
    """Lifecycle status of a live channel.

    Flow:
        scheduled → running (manual start or recurrence)
        running → stopped (countdown expiry or manual stop)
        stopped → running (manual start or recurrence)
    """

    SCHEDULED = "scheduled"
    RUNNING = "running"
    STOPPED = "stopped"


class CountdownKind(enum.Enum):
    """What a countdown is counting towards.

    start: time until a scheduled channel goes live
    ends: time until a running channel stops
    """

    START = "start"
    ENDS = "ends"


class BulkAction(str, enum.Enum):
    """Actions accepted by bulk channel updates."""

    START = "start"
    STOP = "stop"
    DELETE = "delete"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Channel(Base):
    """A simulated live channel with a countdown-driven lifecycle.

    Attributes:
        id: Store-assigned integer primary key.
        sequence_number: Display ordering (snapshots are sorted by this).
        name: Short channel name (e.g. "d2kg").
        title: Human-readable stream title.
        source_file: Media file looped by the channel.
        stream_key: Opaque stream credential. Not logged.
        duration: Nominal run length as a human-readable string ("11h 55m").
        repeat_policy: Named recurrence policy ("daily", "hourly", ..., "none").
        status: Lifecycle status.
        countdown_seconds: Remaining seconds, None when not counting down.
        countdown_kind: Whether the countdown is time-until-start or time-until-end.
        created_at: Timestamp when the channel was created.
        updated_at: Timestamp of the last mutation.
    """

    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,  # Snapshot ordering
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    source_file: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    stream_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    duration: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DEFAULT_DURATION,
        server_default=DEFAULT_DURATION,
    )
    repeat_policy: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=REPEAT_POLICY_NONE,
        server_default=REPEAT_POLICY_NONE,
    )
    status: Mapped[ChannelStatus] = mapped_column(
        Enum(
            ChannelStatus,
            name="channel_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=ChannelStatus.SCHEDULED,
        index=True,  # Tick and boot queries filter on status
    )
    countdown_seconds: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    countdown_kind: Mapped[CountdownKind | None] = mapped_column(
        Enum(
            CountdownKind,
            name="countdown_kind",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
            validate_strings=True,
        ),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def duration_seconds(self) -> int:
        """Nominal run length in seconds, derived from ``duration``."""
        return parse_duration(self.duration)

    def __repr__(self) -> str:
        """Return string representation for debugging.

        Note:
            NEVER expose stream_key in repr.
        """
        return (
            f"<Channel(id={self.id!r}, no={self.sequence_number!r}, title={self.title!r}, "
            f"status={self.status.value if self.status else None!r}, "
            f"countdown_seconds={self.countdown_seconds!r})>"
        )
