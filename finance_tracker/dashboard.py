"""
Live Dashboard

The composition root of the live aggregation layer. It owns one stream
per collection, one record store per stream, and publishes a fresh
DashboardState to its observers after every change.

DESIGN DECISION: Streams fail independently.
- A stream configured as resilient reconnects by itself and is shown as
  degraded meanwhile; its last good data stays on screen.
- A plain stream that reports an error is shown as degraded until its
  next snapshot; it is not retried. If the error comes before its first
  snapshot it is FAILED, so it no longer holds up loading.
- A stream that cannot be opened at all is FAILED for this session.
None of this touches the other two streams or blanks the dashboard.

Everything runs on one thread of control: store swaps, recomputation and
publishing all happen inside the callback that delivered the change.
"""

from functools import partial
from typing import Callable, Optional

import structlog

from finance_tracker.aggregation import compute_metrics, recent_transactions
from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, StreamSettings, get_settings
from finance_tracker.errors import SetupError
from finance_tracker.models.dashboard import DashboardState, StreamState, StreamStatus
from finance_tracker.models.records import (
    ExpenseRecord,
    InvestmentRecord,
    SubscriptionRecord,
)
from finance_tracker.models.snapshot import Notification, Snapshot, SnapshotError
from finance_tracker.services.transport.interface import (
    ChangeNotificationSource,
    IdentityProvider,
)
from finance_tracker.streams import (
    AsyncioScheduler,
    RecordStore,
    ResilientSubscription,
    Scheduler,
    StreamHandle,
    StreamSubscription,
)


logger = structlog.get_logger(__name__)

EXPENSES = "expenses"
SUBSCRIPTIONS = "subscriptions"
INVESTMENTS = "investments"

STREAM_RECORD_TYPES = {
    EXPENSES: ExpenseRecord,
    SUBSCRIPTIONS: SubscriptionRecord,
    INVESTMENTS: InvestmentRecord,
}

Observer = Callable[[DashboardState], None]


class _StreamSlot:
    """Everything the dashboard owns for one collection."""

    def __init__(self, name: str):
        self.name = name
        self.store = RecordStore(STREAM_RECORD_TYPES[name])
        self.resilient: Optional[ResilientSubscription] = None
        self.handle: Optional[StreamHandle] = None

        # Used for plain streams; resilient ones report their own
        self.state = StreamState.CONNECTING
        self.degraded = False
        self.message: Optional[str] = None
        self.closed = False

    def status(self) -> StreamStatus:
        if self.resilient is not None:
            state = self.resilient.state
            degraded = self.resilient.degraded
            message = self.resilient.message
        else:
            state, degraded, message = self.state, self.degraded, self.message
        return StreamStatus(
            name=self.name,
            state=state,
            loaded=self.store.loaded,
            degraded=degraded,
            message=message,
            record_count=len(self.store),
        )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.resilient is not None:
            self.resilient.close()
        if self.handle is not None:
            self.handle.close()
        self.state = StreamState.CLOSED


class Dashboard:
    """
    Live financial dashboard for the signed-in user.

    Usage:
        dashboard = Dashboard(source, identity)
        dashboard.subscribe(render)
        dashboard.open()
        ...
        dashboard.close()
    """

    def __init__(
        self,
        source: ChangeNotificationSource,
        identity: IdentityProvider,
        scheduler: Optional[Scheduler] = None,
        stream_settings: Optional[StreamSettings] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._source = source
        self._identity = identity
        self._scheduler = scheduler or AsyncioScheduler()
        self._stream_settings = stream_settings or get_settings().streams
        self._app_settings = app_settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

        self._slots = {name: _StreamSlot(name) for name in STREAM_RECORD_TYPES}
        self._observers: list[Observer] = []
        self._state = DashboardState(
            streams={name: slot.status() for name, slot in self._slots.items()},
        )
        self._loading = True
        self._ready = False
        self._opened = False
        self._opening = False
        self._closed = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DashboardState:
        """The most recently published state."""
        return self._state

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    def records(self, stream: str) -> tuple:
        """Current records of one stream (read-only)."""
        return self._slots[stream].store.records()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer for published states.

        Returns a function that removes the observer again.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def open(self) -> bool:
        """
        Open all three streams for the signed-in user.

        Returns False (and opens nothing) when nobody is signed in.
        """
        if self._closed:
            raise RuntimeError("Dashboard is closed")
        if self._opened:
            raise RuntimeError("Dashboard already open")

        user_id = self._identity.current_user_id()
        if not user_id:
            logger.warning("dashboard_identity_missing")
            self._audit.log_identity_missing()
            self._publish()
            return False

        self._opened = True
        self._ready = True
        resilient = set(self._stream_settings.resilient_collections_list)

        # Initial snapshots may arrive while opening; publish once at the end
        self._opening = True
        try:
            for name, slot in self._slots.items():
                if name in resilient:
                    self._open_resilient(slot, user_id)
                else:
                    self._open_plain(slot, user_id)
        finally:
            self._opening = False

        self._publish()
        return True

    def close(self) -> None:
        """Close every stream exactly once. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for slot in self._slots.values():
            slot.close()
        self._observers.clear()
        logger.info("dashboard_closed")

    # -------------------------------------------------------------------------
    # Opening
    # -------------------------------------------------------------------------

    def _open_resilient(self, slot: _StreamSlot, user_id: str) -> None:
        slot.resilient = ResilientSubscription(
            StreamSubscription(self._source, slot.name),
            listener=partial(self._on_snapshot, slot),
            scheduler=self._scheduler,
            retry_delay=self._stream_settings.retry_delay_seconds,
            on_status=partial(self._on_resilient_status, slot),
            audit_logger=self._audit,
        )
        slot.resilient.start(user_id)

    def _open_plain(self, slot: _StreamSlot, user_id: str) -> None:
        try:
            slot.handle = StreamSubscription(self._source, slot.name).open(
                user_id, partial(self._on_plain_notification, slot),
            )
        except SetupError as e:
            slot.state = StreamState.FAILED
            slot.degraded = True
            slot.message = f"Could not connect: {e}"
            logger.error("dashboard_stream_setup_failed", stream=slot.name, error=str(e))
            self._audit.log_setup_failed(slot.name, str(e))
            return
        self._audit.log_stream_opened(slot.name, user_id)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _on_plain_notification(self, slot: _StreamSlot, notification: Notification) -> None:
        if slot.closed:
            return
        if isinstance(notification, SnapshotError):
            if not slot.store.loaded:
                # Never retried, so it would otherwise hold up loading forever
                slot.state = StreamState.FAILED
            slot.degraded = True
            slot.message = f"Updates interrupted: {notification.message}"
            logger.warning("dashboard_stream_error", stream=slot.name, error=notification.message)
            self._audit.log_transport_error(slot.name, notification.message)
            self._publish()
            return

        slot.state = StreamState.LIVE
        slot.degraded = False
        slot.message = None
        self._on_snapshot(slot, notification)

    def _on_snapshot(self, slot: _StreamSlot, snapshot: Snapshot) -> None:
        if slot.closed:
            return
        records = slot.store.apply_snapshot(snapshot)
        self._audit.log_snapshot_applied(slot.name, len(records))
        self._publish()

    def _on_resilient_status(self, slot: _StreamSlot, subscription: ResilientSubscription) -> None:
        if slot.closed:
            return
        self._publish()

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def _publish(self) -> None:
        if self._opening or self._closed:
            return

        statuses = {name: slot.status() for name, slot in self._slots.items()}
        if self._loading and self._ready:
            # Once everything has arrived, later trouble shows as degraded,
            # never as a full reload
            self._loading = not all(status.settled for status in statuses.values())

        expenses = self._slots[EXPENSES].store.records()
        metrics = compute_metrics(
            expenses,
            self._slots[SUBSCRIPTIONS].store.records(),
            self._slots[INVESTMENTS].store.records(),
        )
        self._state = DashboardState(
            ready=self._ready,
            loading=self._loading,
            streams=statuses,
            metrics=metrics,
            recent_transactions=recent_transactions(
                expenses, self._app_settings.recent_transactions_limit,
            ),
        )

        self._audit.log_dashboard_published(
            loading=self._state.loading,
            degraded_streams=[name for name, s in statuses.items() if s.degraded],
            net_worth=str(metrics.net_worth),
        )

        for observer in list(self._observers):
            try:
                observer(self._state)
            except Exception as e:
                # A broken view must not stop the streams
                logger.error("dashboard_observer_failed", error=str(e))
                self._audit.log_observer_failed(str(e))
