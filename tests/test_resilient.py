"""
Tests for ResilientSubscription

Time is driven by a ManualScheduler, so every retry, cancel and race
below happens at an exact, reproducible moment.
"""

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.errors import TransportError
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.dashboard import StreamState
from finance_tracker.models.snapshot import SnapshotError
from finance_tracker.services.transport import InMemoryChangeSource
from finance_tracker.streams import ResilientSubscription, StreamSubscription

from conftest import USER_ID


COLLECTION = "subscriptions"


class Recorder:
    """Collects snapshots and status announcements."""

    def __init__(self):
        self.snapshots = []
        self.statuses = []

    def on_snapshot(self, snapshot):
        self.snapshots.append(snapshot)

    def on_status(self, subscription):
        self.statuses.append((subscription.state, subscription.message))


class ErrorOnSubscribeSource(InMemoryChangeSource):
    """Delivers an error right after the initial snapshot, while open() runs."""

    def __init__(self, broken_subscribes=0):
        super().__init__()
        self.broken_subscribes = broken_subscribes

    def subscribe(self, collection, user_id, listener):
        watch = super().subscribe(collection, user_id, listener)
        if self.broken_subscribes:
            self.broken_subscribes -= 1
            listener(SnapshotError(collection=collection, error=TransportError("stream reset")))
        return watch


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def resilient(source, scheduler, recorder, audit):
    subscription = ResilientSubscription(
        StreamSubscription(source, COLLECTION),
        listener=recorder.on_snapshot,
        scheduler=scheduler,
        retry_delay=5.0,
        on_status=recorder.on_status,
        audit_logger=audit,
    )
    yield subscription
    subscription.close()


class TestResilientSubscription:
    """Tests for the reconnect state machine."""

    def test_first_snapshot_goes_live(self, source, resilient, recorder):
        """Test CONNECTING -> LIVE on the initial snapshot."""
        source.put(COLLECTION, "s1", USER_ID, {"amount": 10})
        resilient.start(USER_ID)

        assert resilient.state == StreamState.LIVE
        assert not resilient.degraded
        assert recorder.snapshots[-1].ids == ["s1"]

    def test_error_schedules_retry_and_degrades(self, source, scheduler, resilient, recorder):
        """Test LIVE -> RECONNECTING with a retry pending."""
        resilient.start(USER_ID)
        source.fail(COLLECTION, "socket closed")

        assert resilient.state == StreamState.RECONNECTING
        assert resilient.degraded
        assert "socket closed" in resilient.message
        assert resilient.retry_pending
        assert scheduler.pending == 1
        assert recorder.statuses[-1][0] == StreamState.RECONNECTING
        # The broken watch is released immediately
        assert source.listener_count(COLLECTION) == 0

    def test_last_snapshot_survives_outage(self, source, resilient, recorder):
        """Test that the last good data stays available while degraded."""
        source.put(COLLECTION, "s1", USER_ID, {"amount": 10})
        resilient.start(USER_ID)
        source.fail(COLLECTION)

        assert resilient.last_snapshot.ids == ["s1"]
        assert len(recorder.snapshots) == 1

    def test_reconnect_after_fixed_delay(self, source, scheduler, resilient):
        """Test that the retry fires exactly after the configured delay."""
        resilient.start(USER_ID)
        source.fail(COLLECTION)

        assert scheduler.advance(4.99) == 0
        assert resilient.state == StreamState.RECONNECTING
        assert scheduler.advance(0.01) == 1
        assert resilient.state == StreamState.LIVE
        assert resilient.attempts == 0
        assert source.listener_count(COLLECTION) == 1

    def test_recovery_delivers_current_data(self, source, scheduler, resilient, recorder):
        """Test that changes made during the outage arrive after reconnect."""
        resilient.start(USER_ID)
        source.fail(COLLECTION)
        source.put(COLLECTION, "s2", USER_ID, {"amount": 99})

        scheduler.advance(5)

        assert recorder.snapshots[-1].ids == ["s2"]

    def test_retries_never_give_up_or_grow(self, source, scheduler, resilient):
        """Test fixed-interval, unbounded retries."""
        resilient.start(USER_ID)
        source.set_available(COLLECTION, False)
        source.fail(COLLECTION)

        for attempt in range(1, 21):
            assert resilient.attempts == attempt
            assert scheduler.advance(4.9) == 0
            assert scheduler.advance(0.1) == 1
            assert resilient.state == StreamState.RECONNECTING
            assert resilient.message.startswith("Still reconnecting")

        source.set_available(COLLECTION, True)
        scheduler.advance(5)
        assert resilient.state == StreamState.LIVE
        assert not resilient.degraded

    def test_successful_reopen_waits_for_snapshot(self, scheduler, recorder, audit):
        """Test that recovery is the first snapshot, not the reopen itself."""
        quiet = InMemoryChangeSource(deliver_on_subscribe=False)
        subscription = ResilientSubscription(
            StreamSubscription(quiet, COLLECTION),
            listener=recorder.on_snapshot,
            scheduler=scheduler,
            retry_delay=5.0,
            audit_logger=audit,
        )
        subscription.start(USER_ID)
        assert subscription.state == StreamState.CONNECTING

        quiet.fail(COLLECTION)
        scheduler.advance(5)
        assert subscription.state == StreamState.RECONNECTING
        assert subscription.degraded

        quiet.put(COLLECTION, "s1", USER_ID, {})
        assert subscription.state == StreamState.LIVE
        subscription.close()

    def test_error_during_start_releases_watch(self, scheduler, recorder):
        """Test that a watch reporting an error while opening is not kept."""
        flaky = ErrorOnSubscribeSource(broken_subscribes=1)
        subscription = ResilientSubscription(
            StreamSubscription(flaky, COLLECTION),
            listener=recorder.on_snapshot,
            scheduler=scheduler,
        )
        subscription.start(USER_ID)

        assert subscription.state == StreamState.RECONNECTING
        assert flaky.listener_count(COLLECTION) == 0

        scheduler.advance(5)
        assert subscription.state == StreamState.LIVE
        assert flaky.listener_count(COLLECTION) == 1
        subscription.close()
        assert flaky.listener_count() == 0

    def test_error_during_reopen_releases_watch(self, scheduler, recorder):
        """Test that a reopened watch that errors at once is dropped before the next retry."""
        flaky = ErrorOnSubscribeSource()
        subscription = ResilientSubscription(
            StreamSubscription(flaky, COLLECTION),
            listener=recorder.on_snapshot,
            scheduler=scheduler,
        )
        subscription.start(USER_ID)
        flaky.fail(COLLECTION)
        flaky.broken_subscribes = 1

        scheduler.advance(5)

        assert subscription.state == StreamState.RECONNECTING
        assert subscription.retry_pending
        assert flaky.listener_count(COLLECTION) == 0
        scheduler.advance(5)
        assert subscription.state == StreamState.LIVE
        assert flaky.listener_count(COLLECTION) == 1
        subscription.close()

    def test_close_cancels_pending_retry(self, source, scheduler, resilient):
        """Test that no retry fires after close."""
        resilient.start(USER_ID)
        source.fail(COLLECTION)
        resilient.close()

        assert not resilient.retry_pending
        assert scheduler.pending == 0
        assert scheduler.advance(60) == 0
        assert resilient.state == StreamState.CLOSED
        assert source.listener_count() == 0

    def test_close_is_idempotent(self, source, resilient, audit):
        """Test that closing twice releases the watch once."""
        resilient.start(USER_ID)
        resilient.close()
        resilient.close()

        assert source.unsubscribed == [1]
        closed = [e for e in audit.recent_events() if e.event_type == AuditEventType.STREAM_CLOSED]
        assert len(closed) == 1

    def test_setup_failure_is_terminal(self, source, scheduler, resilient, recorder):
        """Test that a refused first subscribe turns FAILED without raising."""
        source.set_available(COLLECTION, False)
        resilient.start(USER_ID)

        assert resilient.state == StreamState.FAILED
        assert resilient.degraded
        assert resilient.message.startswith("Could not connect")
        assert scheduler.pending == 0
        assert recorder.statuses == [(StreamState.FAILED, resilient.message)]

    def test_missing_user_is_setup_failure(self, resilient):
        """Test that starting without a user fails the stream."""
        resilient.start(None)
        assert resilient.state == StreamState.FAILED

    def test_cannot_start_twice(self, resilient):
        """Test that a subscription is started only once."""
        resilient.start(USER_ID)
        with pytest.raises(RuntimeError):
            resilient.start(USER_ID)

    def test_rejects_non_positive_delay(self, source, scheduler, recorder):
        """Test retry delay validation."""
        with pytest.raises(ValueError):
            ResilientSubscription(
                StreamSubscription(source, COLLECTION),
                listener=recorder.on_snapshot,
                scheduler=scheduler,
                retry_delay=0,
            )

    def test_audit_trail_of_an_outage(self, source, scheduler, resilient, audit):
        """Test the audit events written for error, retry and recovery."""
        resilient.start(USER_ID)
        source.fail_next_subscribes(COLLECTION, times=1)
        source.fail(COLLECTION, "offline")
        scheduler.advance(5)
        scheduler.advance(5)

        types = [e.event_type for e in reversed(audit.recent_events())]
        assert types == [
            AuditEventType.STREAM_OPENED,
            AuditEventType.TRANSPORT_ERROR,
            AuditEventType.RECONNECT_SCHEDULED,
            AuditEventType.RECONNECT_FAILED,
            AuditEventType.RECONNECT_SCHEDULED,
            AuditEventType.STREAM_RECOVERED,
        ]
        recovered = audit.recent_events(limit=1)[0]
        assert recovered.details["attempts"] == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
