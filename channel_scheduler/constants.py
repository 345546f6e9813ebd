"""Project-wide constants and mappings.

This module contains the duration default, the named repeat policies with
their cron expressions, and the aliases accepted for each policy.
"""

# 11h 55m: nominal run length used when a duration string cannot be parsed
DEFAULT_DURATION = "11h 55m"
DEFAULT_DURATION_SECONDS = 11 * 3600 + 55 * 60

REPEAT_POLICY_NONE = "none"
REPEAT_POLICY_DAILY = "daily"
REPEAT_POLICY_HOURLY = "hourly"
REPEAT_POLICY_EVERY_30_MINUTES = "every 30 minutes"
REPEAT_POLICY_WEEKLY = "weekly"

# Canonical policy name → cron expression (minute hour day month weekday)
REPEAT_POLICY_CRON: dict[str, str] = {
    REPEAT_POLICY_DAILY: "0 0 * * *",  # Every day at midnight
    REPEAT_POLICY_HOURLY: "0 * * * *",
    REPEAT_POLICY_EVERY_30_MINUTES: "*/30 * * * *",
    REPEAT_POLICY_WEEKLY: "0 0 * * 0",  # Sunday midnight
}

# Accepted spellings (lowercase) → canonical policy name.
# Includes the Indonesian labels used by the original dashboard dataset.
REPEAT_POLICY_ALIASES: dict[str, str] = {
    "": REPEAT_POLICY_NONE,
    "none": REPEAT_POLICY_NONE,
    "tidak": REPEAT_POLICY_NONE,
    "daily": REPEAT_POLICY_DAILY,
    "setiap hari": REPEAT_POLICY_DAILY,
    "hourly": REPEAT_POLICY_HOURLY,
    "setiap jam": REPEAT_POLICY_HOURLY,
    "every 30 minutes": REPEAT_POLICY_EVERY_30_MINUTES,
    "setiap 30 menit": REPEAT_POLICY_EVERY_30_MINUTES,
    "weekly": REPEAT_POLICY_WEEKLY,
    "setiap minggu": REPEAT_POLICY_WEEKLY,
}

# Observer message types
MESSAGE_CHANNELS_UPDATE = "channels_update"
MESSAGE_NOTIFICATION = "notification"
MESSAGE_REQUEST_UPDATE = "request_update"
MESSAGE_PING = "ping"
MESSAGE_PONG = "pong"
MESSAGE_ERROR = "error"

WEBSOCKET_PATH = "/ws"
