"""Recurrence resolver - named repeat policies to cron rules.

Channels carry a repeat policy name ("daily", "hourly", "every 30 minutes",
"weekly" or "none"). This module maps the name to a RecurrenceRule whose next
fire time is computed with croniter.

Rules are wall-clock aligned: the next fire time depends only on the current
time, never on when the rule was installed. Re-installing a recurrence job
therefore never shifts its phase.

Unknown policy names are not fatal: resolve() logs a warning and returns None,
and the caller installs no recurrence job.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from croniter import croniter

from channel_scheduler.constants import (
    REPEAT_POLICY_ALIASES,
    REPEAT_POLICY_CRON,
    REPEAT_POLICY_NONE,
)
from channel_scheduler.exceptions import InvalidRecurrencePolicyError

log = structlog.get_logger()


@dataclass(frozen=True)
class RecurrenceRule:
    """A named, cron-based restart rule.

    Attributes:
        policy: Canonical policy name (e.g. "daily")
        expression: Five-field cron expression (e.g. "0 0 * * *")
    """

    policy: str
    expression: str

    def next_fire(self, after: datetime) -> datetime:
        """Return the first fire time strictly after ``after``.

        The returned datetime carries the same tzinfo as ``after``.
        """
        return croniter(self.expression, after).get_next(datetime)

    def seconds_until_next(self, now: datetime) -> float:
        """Seconds from ``now`` until the next fire time."""
        return max(0.0, (self.next_fire(now) - now).total_seconds())


def normalize_policy(name: str | None) -> str:
    """Map a policy name or alias to its canonical name.

    Args:
        name: Policy name as stored or submitted (case-insensitive)

    Returns:
        Canonical policy name ("none" for empty input)

    Raises:
        InvalidRecurrencePolicyError: If the name is not a known policy or alias
    """
    if name is None:
        return REPEAT_POLICY_NONE

    key = " ".join(str(name).split()).lower()
    if key not in REPEAT_POLICY_ALIASES:
        raise InvalidRecurrencePolicyError(name)
    return REPEAT_POLICY_ALIASES[key]


def parse_policy(name: str | None) -> RecurrenceRule | None:
    """Strict variant of resolve(): unknown names raise.

    Returns:
        RecurrenceRule, or None for the "none" policy

    Raises:
        InvalidRecurrencePolicyError: If the name is not supported
    """
    policy = normalize_policy(name)
    if policy == REPEAT_POLICY_NONE:
        return None
    return RecurrenceRule(policy=policy, expression=REPEAT_POLICY_CRON[policy])


def resolve(name: str | None) -> RecurrenceRule | None:
    """Resolve a policy name to a rule, treating unknown names as no recurrence.

    Examples:
        >>> resolve("daily").expression
        '0 0 * * *'
        >>> resolve("none") is None
        True
    """
    try:
        return parse_policy(name)
    except InvalidRecurrencePolicyError:
        log.warning("unknown_repeat_policy", policy=name, treated_as=REPEAT_POLICY_NONE)
        return None
