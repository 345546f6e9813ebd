"""Demo channel dataset.

Seventeen channels of a single "d2kg" account: channels 1-7 are live and
counting down to their end, channels 8-17 are scheduled and counting down to
their start. Inserted only into an empty table (SEED_DEMO_CHANNELS=true).
"""

import structlog

from channel_scheduler.constants import DEFAULT_DURATION, REPEAT_POLICY_DAILY
from channel_scheduler.models import ChannelStatus, CountdownKind
from channel_scheduler.services.channel_store import ChannelStore
from channel_scheduler.services.duration_codec import parse_countdown

log = structlog.get_logger()

RUNNING_COUNTDOWNS = [
    "08:25:59",
    "08:55:58",
    "09:25:59",
    "09:55:59",
    "10:25:59",
    "10:55:59",
    "11:25:59",
]

SCHEDULED_COUNTDOWNS = [
    "00:00:57",
    "00:30:57",
    "01:00:57",
    "01:30:57",
    "02:00:57",
    "02:30:57",
    "03:00:57",
    "03:30:57",
    "04:00:57",
    "04:30:57",
]


def demo_channels() -> list[dict]:
    """Field dicts for the demo dataset, in sequence order."""
    rows = [(ChannelStatus.RUNNING, CountdownKind.ENDS, text) for text in RUNNING_COUNTDOWNS]
    rows += [
        (ChannelStatus.SCHEDULED, CountdownKind.START, text) for text in SCHEDULED_COUNTDOWNS
    ]

    channels = []
    for number, (status, kind, countdown) in enumerate(rows, start=1):
        channels.append(
            {
                "sequence_number": number,
                "name": "d2kg",
                "title": f"D2KG LIVE {number}",
                "source_file": f"Looping Video Live {number}.mp4",
                "stream_key": f"d2kg-live-key-{number:03d}",
                "duration": DEFAULT_DURATION,
                "repeat_policy": REPEAT_POLICY_DAILY,
                "status": status,
                "countdown_seconds": parse_countdown(countdown),
                "countdown_kind": kind,
            }
        )
    return channels


async def seed_demo_channels(store: ChannelStore) -> int:
    """Insert the demo dataset when the channels table is empty.

    Returns:
        Number of channels inserted (0 if the table already had rows).
    """
    existing = await store.count_channels()
    if existing:
        log.info("seed_skipped", existing_channels=existing)
        return 0

    channels = demo_channels()
    for fields in channels:
        await store.create_channel(**fields)

    log.info("seed_completed", inserted=len(channels))
    return len(channels)
