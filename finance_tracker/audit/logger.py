"""
Audit Logger

DESIGN DECISION: Every stream lifecycle change is logged.
This provides:
1. Traceability of connection trouble
2. Debugging capability when totals look wrong
3. A short in-memory history presentation can show ("last reconnect")

The audit logger:
- Is synchronous: it runs inside snapshot callbacks, which must not block
  or suspend
- Gracefully handles failures (logging trouble never breaks a stream)
- Supports correlation IDs to trace one dashboard session
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


DEFAULT_HISTORY_SIZE = 200


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A bounded in-memory history (for presentation and tests)
    """

    def __init__(
        self,
        correlation_id: Optional[UUID] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        """
        Initialize audit logger.

        Args:
            correlation_id: Attached to every event this logger builds.
                            A fresh one is created if omitted.
            history_size: How many recent events to keep in memory.
        """
        self.correlation_id = correlation_id or create_correlation_id()
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("finance_tracker.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was logged, False if logging failed.
        Never raises.
        """
        self._history.append(event)

        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            structlog.get_logger(__name__).error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

        return True

    def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._history)
        events.reverse()
        return events[:limit]

    def log_stream_opened(self, stream: str, user_id: str) -> None:
        """Log a stream being opened."""
        self.log(AuditEventBuilder.stream_opened(stream, user_id, self.correlation_id))

    def log_snapshot_applied(self, stream: str, record_count: int) -> None:
        """Log a snapshot replacing a record store."""
        self.log(AuditEventBuilder.snapshot_applied(stream, record_count, self.correlation_id))

    def log_stream_closed(self, stream: str) -> None:
        """Log a stream being closed."""
        self.log(AuditEventBuilder.stream_closed(stream, self.correlation_id))

    def log_transport_error(self, stream: str, error_message: str) -> None:
        """Log a failed snapshot delivery."""
        self.log(AuditEventBuilder.transport_error(stream, error_message, self.correlation_id))

    def log_reconnect_scheduled(self, stream: str, delay_seconds: float, attempt: int) -> None:
        """Log a scheduled reconnect."""
        self.log(AuditEventBuilder.reconnect_scheduled(
            stream, delay_seconds, attempt, self.correlation_id,
        ))

    def log_reconnect_failed(self, stream: str, attempt: int, error_message: str) -> None:
        """Log a reconnect attempt that could not reopen the stream."""
        self.log(AuditEventBuilder.reconnect_failed(
            stream, attempt, error_message, self.correlation_id,
        ))

    def log_stream_recovered(self, stream: str, attempts: int) -> None:
        """Log a stream delivering data again after trouble."""
        self.log(AuditEventBuilder.stream_recovered(stream, attempts, self.correlation_id))

    def log_setup_failed(self, stream: str, error_message: str) -> None:
        """Log a stream that could not be opened at all."""
        self.log(AuditEventBuilder.setup_failed(stream, error_message, self.correlation_id))

    def log_identity_missing(self) -> None:
        self.log(AuditEventBuilder.identity_missing(self.correlation_id))

    def log_dashboard_published(
        self,
        loading: bool,
        degraded_streams: list[str],
        net_worth: str,
    ) -> None:
        self.log(AuditEventBuilder.dashboard_published(
            loading, degraded_streams, net_worth, self.correlation_id,
        ))

    def log_observer_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.observer_failed(error_message, self.correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a dashboard session starts and pass it to every
    component that logs on behalf of that session.
    """
    return uuid4()
