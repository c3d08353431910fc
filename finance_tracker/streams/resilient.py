"""
Resilient Subscription

Decorates a StreamSubscription with failure detection and fixed-interval
reconnect, for streams known to drop in practice.

STATE MACHINE:

    CONNECTING --snapshot--> LIVE
    CONNECTING --error-----> RECONNECTING
    LIVE       --error-----> RECONNECTING   (retry scheduled)
    RECONNECTING --retry---> reopen; failure reschedules, success waits
                             for the first snapshot
    RECONNECTING --snapshot--> LIVE
    any        --close()---> CLOSED         (pending retry cancelled)
    start() setup failure -> FAILED         (terminal, nothing raised)

Retries use a fixed delay, never grow and never give up. While
reconnecting the stream is degraded: the last good snapshot stays
available and a message explains the trouble.
"""

from typing import Callable, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.models.dashboard import StreamState
from finance_tracker.models.snapshot import Notification, Snapshot, SnapshotError
from finance_tracker.streams.scheduler import Scheduler, Timer
from finance_tracker.streams.subscription import StreamHandle, StreamSubscription


logger = structlog.get_logger(__name__)

DEFAULT_RETRY_DELAY = 5.0

SnapshotListener = Callable[[Snapshot], None]
StatusListener = Callable[["ResilientSubscription"], None]


class ResilientSubscription:
    """
    A stream that reconnects by itself.

    The snapshot listener sees the same snapshots a plain subscription
    would deliver. Errors never reach it; they change `state`, `degraded`
    and `message` instead and are announced through the status listener.
    """

    def __init__(
        self,
        subscription: StreamSubscription,
        listener: SnapshotListener,
        scheduler: Scheduler,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        on_status: Optional[StatusListener] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if retry_delay <= 0:
            raise ValueError("retry_delay must be positive")
        self._subscription = subscription
        self._listener = listener
        self._scheduler = scheduler
        self.retry_delay = retry_delay
        self._on_status = on_status
        self._audit = audit_logger

        self._state = StreamState.CONNECTING
        self._user_id: Optional[str] = None
        self._handle: Optional[StreamHandle] = None
        self._timer: Optional[Timer] = None
        self._message: Optional[str] = None
        self._last_snapshot: Optional[Snapshot] = None
        self._started = False
        self.attempts = 0

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._subscription.collection

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def degraded(self) -> bool:
        return self._state in (StreamState.RECONNECTING, StreamState.FAILED)

    @property
    def message(self) -> Optional[str]:
        return self._message if self.degraded else None

    @property
    def last_snapshot(self) -> Optional[Snapshot]:
        """Last good snapshot; stays available while reconnecting."""
        return self._last_snapshot

    @property
    def retry_pending(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, user_id: Optional[str]) -> None:
        """
        Open the underlying stream.

        A setup failure is caught and turns into the terminal FAILED
        state; it is never raised.
        """
        if self._started:
            raise RuntimeError(f"{self.name} subscription already started")
        self._started = True
        self._user_id = user_id

        try:
            handle = self._subscription.open(user_id, self._on_notification)
        except Exception as e:
            self._state = StreamState.FAILED
            self._message = f"Could not connect: {e}"
            logger.error("resilient_setup_failed", stream=self.name, error=str(e))
            if self._audit:
                self._audit.log_setup_failed(self.name, str(e))
            self._announce()
            return

        self._adopt(handle)
        if self._audit and user_id:
            self._audit.log_stream_opened(self.name, user_id)

    def close(self) -> None:
        """Stop for good. Cancels any pending retry. Idempotent."""
        if self._state == StreamState.CLOSED:
            return
        self._state = StreamState.CLOSED
        self._cancel_retry()
        self._close_handle()
        if self._audit:
            self._audit.log_stream_closed(self.name)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _on_notification(self, notification: Notification) -> None:
        if self._state in (StreamState.CLOSED, StreamState.FAILED):
            return
        if isinstance(notification, SnapshotError):
            self._on_error(notification)
        else:
            self._on_snapshot(notification)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        recovering = self._state == StreamState.RECONNECTING
        self._state = StreamState.LIVE
        self._message = None
        self._last_snapshot = snapshot

        if recovering:
            logger.info("resilient_recovered", stream=self.name, attempts=self.attempts)
            if self._audit:
                self._audit.log_stream_recovered(self.name, self.attempts)
        self.attempts = 0

        self._listener(snapshot)

    def _on_error(self, notification: SnapshotError) -> None:
        logger.warning("resilient_transport_error", stream=self.name, error=notification.message)
        if self._audit:
            self._audit.log_transport_error(self.name, notification.message)

        self._state = StreamState.RECONNECTING
        self._message = f"Connection trouble, retrying: {notification.message}"
        # The broken handle is dropped; a retry opens a fresh one
        self._close_handle()
        self._schedule_retry()
        self._announce()

    # -------------------------------------------------------------------------
    # Retry
    # -------------------------------------------------------------------------

    def _schedule_retry(self) -> None:
        self._cancel_retry()
        self.attempts += 1
        self._timer = self._scheduler.call_later(self.retry_delay, self._retry)
        if self._audit:
            self._audit.log_reconnect_scheduled(self.name, self.retry_delay, self.attempts)

    def _cancel_retry(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _retry(self) -> None:
        self._timer = None
        if self._state != StreamState.RECONNECTING:
            return

        self._close_handle()
        try:
            handle = self._subscription.open(self._user_id, self._on_notification)
        except Exception as e:
            logger.warning(
                "resilient_reconnect_failed",
                stream=self.name,
                attempt=self.attempts,
                error=str(e),
            )
            if self._audit:
                self._audit.log_reconnect_failed(self.name, self.attempts, str(e))
            self._message = f"Still reconnecting: {e}"
            self._schedule_retry()
            self._announce()
            return

        self._adopt(handle)

    def _adopt(self, handle: StreamHandle) -> None:
        # The source may have delivered an error, or we may have been closed,
        # while open() was still running
        broken = self._state == StreamState.RECONNECTING and self.retry_pending
        if self._state == StreamState.CLOSED or broken:
            handle.close()
            return
        self._handle = handle

    def _close_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def _announce(self) -> None:
        if self._on_status is not None:
            self._on_status(self)
