"""
Dashboard State Models

The read-only view published to presentation each time anything changes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.metrics import DerivedMetrics
from finance_tracker.models.records import ExpenseRecord


class StreamState(str, Enum):
    """
    Connection state of one stream.

    CLOSED and FAILED are terminal.
    """
    CONNECTING = "connecting"
    LIVE = "live"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


class StreamStatus(BaseModel):
    """What presentation needs to know about one stream."""
    model_config = ConfigDict(frozen=True)

    name: str
    state: StreamState = StreamState.CONNECTING
    loaded: bool = Field(
        default=False,
        description="Has the stream ever delivered a snapshot?"
    )
    degraded: bool = Field(
        default=False,
        description="Is the stream currently failing to receive updates?"
    )
    message: Optional[str] = Field(
        default=None,
        description="Why the stream is degraded"
    )
    record_count: int = 0

    @property
    def settled(self) -> bool:
        """Loaded, or failed for good (so it no longer holds up loading)."""
        return self.loaded or self.state == StreamState.FAILED


class DashboardState(BaseModel):
    """
    Composed, immutable result of the live aggregation.

    A new instance is published after every change; consumers never see a
    half-updated state.
    """
    model_config = ConfigDict(frozen=True)

    ready: bool = Field(
        default=False,
        description="False when no user is signed in and nothing was opened"
    )
    loading: bool = True
    streams: dict[str, StreamStatus] = Field(default_factory=dict)
    metrics: DerivedMetrics = Field(default_factory=DerivedMetrics)
    recent_transactions: tuple[ExpenseRecord, ...] = ()
    published_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def degraded(self) -> bool:
        """True if any stream is degraded."""
        return any(status.degraded for status in self.streams.values())

    def stream(self, name: str) -> StreamStatus:
        return self.streams[name]
