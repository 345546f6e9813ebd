# Data factories for test data generation

from tests.support.factories.channel_factory import (
    channel_fields,
    create_channel,
    create_channels,
    create_running_channel,
)

__all__ = [
    "channel_fields",
    "create_channel",
    "create_channels",
    "create_running_channel",
]
