"""Live stream handling: subscriptions, reconnects and record stores."""

from finance_tracker.streams.resilient import ResilientSubscription
from finance_tracker.streams.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    Timer,
)
from finance_tracker.streams.store import RecordStore
from finance_tracker.streams.subscription import StreamHandle, StreamSubscription

__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "RecordStore",
    "ResilientSubscription",
    "Scheduler",
    "StreamHandle",
    "StreamSubscription",
    "Timer",
]
