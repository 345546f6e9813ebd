"""Live channel scheduler.

This package contains the FastAPI service that drives simulated live
channels through their lifecycle: countdowns ticking once per second,
automatic stops when a countdown reaches zero, recurrence restarts from
named repeat policies, and real-time snapshots pushed to WebSocket
observers.
"""

from channel_scheduler.database import create_engine, create_session_factory
from channel_scheduler.models import Base, Channel, ChannelStatus, CountdownKind

__all__ = [
    "Base",
    "Channel",
    "ChannelStatus",
    "CountdownKind",
    "create_engine",
    "create_session_factory",
]
