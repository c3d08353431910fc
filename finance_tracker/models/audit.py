"""
Audit Models for the Finance Tracker

Every stream lifecycle change is recorded as an audit event.
This provides:
1. Traceability of connection trouble (when a stream dropped, how long it
   took to come back)
2. Debugging information when totals look wrong
3. A correlation id tying together everything one dashboard session saw

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Stream lifecycle
    STREAM_OPENED = "stream_opened"
    SNAPSHOT_APPLIED = "snapshot_applied"
    STREAM_CLOSED = "stream_closed"

    # Failures and recovery
    TRANSPORT_ERROR = "transport_error"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    RECONNECT_FAILED = "reconnect_failed"
    STREAM_RECOVERED = "stream_recovered"
    SETUP_FAILED = "setup_failed"

    # Dashboard
    IDENTITY_MISSING = "identity_missing"
    DASHBOARD_PUBLISHED = "dashboard_published"
    OBSERVER_FAILED = "observer_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which stream is this about?
    stream: Optional[str] = Field(
        default=None,
        description="Logical stream name (expenses, subscriptions, investments)"
    )

    # Correlation - all events of one dashboard session
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "stream": self.stream,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.stream_opened("expenses", user_id, correlation_id)
        event = AuditEventBuilder.transport_error("subscriptions", message, correlation_id)
    """

    @staticmethod
    def stream_opened(
        stream: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAM_OPENED,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Stream opened: {stream}",
            details={"user_id": user_id},
        )

    @staticmethod
    def snapshot_applied(
        stream: str,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Snapshot applied: {stream} now holds {record_count} records",
            details={"record_count": record_count},
        )

    @staticmethod
    def stream_closed(
        stream: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAM_CLOSED,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Stream closed: {stream}",
        )

    @staticmethod
    def transport_error(
        stream: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSPORT_ERROR,
            severity=AuditSeverity.WARNING,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Snapshot delivery failed: {stream}",
            error_message=error_message,
        )

    @staticmethod
    def reconnect_scheduled(
        stream: str,
        delay_seconds: float,
        attempt: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONNECT_SCHEDULED,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Reconnect #{attempt} of {stream} in {delay_seconds:g}s",
            details={
                "delay_seconds": delay_seconds,
                "attempt": attempt,
            },
        )

    @staticmethod
    def reconnect_failed(
        stream: str,
        attempt: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONNECT_FAILED,
            severity=AuditSeverity.WARNING,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Reconnect #{attempt} of {stream} failed",
            details={"attempt": attempt},
            error_message=error_message,
        )

    @staticmethod
    def stream_recovered(
        stream: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAM_RECOVERED,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Stream recovered: {stream} after {attempts} attempt(s)",
            details={"attempts": attempts},
        )

    @staticmethod
    def setup_failed(
        stream: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETUP_FAILED,
            severity=AuditSeverity.ERROR,
            stream=stream,
            correlation_id=correlation_id,
            description=f"Could not open stream: {stream}",
            error_message=error_message,
        )

    @staticmethod
    def identity_missing(
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_MISSING,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="No signed-in user; dashboard not opened",
        )

    @staticmethod
    def dashboard_published(
        loading: bool,
        degraded_streams: list[str],
        net_worth: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_PUBLISHED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description="Dashboard state published",
            details={
                "loading": loading,
                "degraded_streams": degraded_streams,
                "net_worth": net_worth,
            },
        )

    @staticmethod
    def observer_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBSERVER_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Dashboard observer raised while handling a state",
            error_message=error_message,
        )
