"""Shared exceptions for the channel scheduler.

This module contains exception classes used across the codec, store,
scheduler and request layers so that services do not depend on each other
just to share error types.

Recovery policy:
    MalformedDurationError and InvalidRecurrencePolicyError are recovered
    where they are raised (default value + warning). ChannelNotFoundError,
    MalformedCountdownError and PersistenceError reach the caller of a manual
    operation; the tick loop recovers from them per channel.
"""


class MalformedDurationError(ValueError):
    """Raised when a duration string does not match "<int>h <int>m".

    Attributes:
        text: The rejected input.
    """

    def __init__(self, text: object):
        self.text = text
        super().__init__(f"Malformed duration: {text!r} (expected e.g. '11h 55m')")


class MalformedCountdownError(ValueError):
    """Raised when a countdown value is not a valid "HH:MM:SS" string.

    Attributes:
        value: The rejected input.
    """

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Malformed countdown: {value!r} (expected HH:MM:SS)")


class ChannelNotFoundError(LookupError):
    """Raised when a channel id does not exist in the store.

    Attributes:
        channel_id: The unknown channel id.

    Example:
        >>> await scheduler.start_channel(999)
        ChannelNotFoundError: Channel 999 not found
    """

    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        super().__init__(f"Channel {channel_id} not found")


class PersistenceError(Exception):
    """Raised when a store call fails.

    Wraps the underlying SQLAlchemy error so callers outside the store never
    need to import database exception types.

    Attributes:
        operation: Store operation that failed (e.g. "update_countdown").
        channel_id: Channel involved, if any.
    """

    def __init__(self, operation: str, message: str, channel_id: int | None = None):
        self.operation = operation
        self.channel_id = channel_id
        super().__init__(message)

    def __str__(self) -> str:
        """Return error message with operation context."""
        base_message = super().__str__()
        if self.channel_id is None:
            return f"{base_message} (operation={self.operation})"
        return f"{base_message} (operation={self.operation}, channel_id={self.channel_id})"


class InvalidRecurrencePolicyError(ValueError):
    """Raised when a repeat policy name is not one of the supported policies.

    Attributes:
        policy: The rejected policy name.
    """

    def __init__(self, policy: object):
        self.policy = policy
        super().__init__(f"Unknown repeat policy: {policy!r}")
