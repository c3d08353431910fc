"""
Tests for stream subscriptions, record stores and schedulers
"""

import asyncio
import pytest
from decimal import Decimal

from finance_tracker.aggregation import compute_metrics
from finance_tracker.errors import SetupError
from finance_tracker.models.records import ExpenseRecord, InvestmentRecord
from finance_tracker.models.snapshot import Snapshot, SnapshotError
from finance_tracker.streams import (
    AsyncioScheduler,
    ManualScheduler,
    RecordStore,
    StreamHandle,
    StreamSubscription,
)

from conftest import OTHER_USER_ID, USER_ID


class TestStreamSubscription:
    """Tests for StreamSubscription."""

    def test_open_delivers_initial_snapshot(self, source):
        """Test that opening yields the current documents of the user."""
        source.put("expenses", "a", USER_ID, {"amount": 10})
        source.put("expenses", "b", OTHER_USER_ID, {"amount": 99})
        received = []

        StreamSubscription(source, "expenses").open(USER_ID, received.append)

        assert len(received) == 1
        assert received[0].ids == ["a"]

    def test_every_change_delivers_a_full_snapshot(self, source):
        """Test that later changes arrive as complete snapshots."""
        received = []
        StreamSubscription(source, "expenses").open(USER_ID, received.append)

        source.put("expenses", "a", USER_ID, {"amount": 10})
        source.put("expenses", "b", USER_ID, {"amount": 20})
        source.delete("expenses", "a")

        assert [s.ids for s in received] == [[], ["a"], ["a", "b"], ["b"]]

    def test_errors_are_passed_through(self, source):
        """Test that a plain subscription does not retry."""
        received = []
        StreamSubscription(source, "expenses").open(USER_ID, received.append)

        source.fail("expenses", "offline")

        assert isinstance(received[-1], SnapshotError)
        assert received[-1].message == "offline"
        assert source.listener_count("expenses") == 1

    def test_missing_user_is_setup_error(self, source):
        """Test that opening without a user fails synchronously."""
        subscription = StreamSubscription(source, "expenses")
        with pytest.raises(SetupError):
            subscription.open(None, lambda n: None)
        with pytest.raises(SetupError):
            subscription.open("", lambda n: None)
        assert source.listener_count() == 0

    def test_rejected_subscribe_is_setup_error(self, source):
        """Test that a refused subscription surfaces as SetupError."""
        source.set_available("expenses", False)
        with pytest.raises(SetupError):
            StreamSubscription(source, "expenses").open(USER_ID, lambda n: None)

    def test_close_is_idempotent(self, source):
        """Test that closing twice releases the subscription once."""
        subscription = StreamSubscription(source, "expenses")
        handle = subscription.open(USER_ID, lambda n: None)

        subscription.close(handle)
        subscription.close(handle)
        handle.close()

        assert handle.closed
        assert len(source.unsubscribed) == 1
        assert source.listener_count() == 0

    def test_no_delivery_after_close(self, source):
        """Test that nothing reaches the listener once closed."""
        received = []
        handle = StreamSubscription(source, "expenses").open(USER_ID, received.append)
        handle.close()

        handle._deliver(Snapshot.of("expenses", [("late", {})]))

        assert len(received) == 1

    def test_close_during_initial_snapshot(self, source):
        """Test closing from inside the first delivery releases the source."""
        closing = []

        def close_immediately(notification):
            closing[0].close()

        handle = StreamHandle(source, "expenses", USER_ID, close_immediately)
        closing.append(handle)
        handle._attach(source.subscribe("expenses", USER_ID, handle._deliver))

        assert handle.closed
        assert source.listener_count() == 0
        assert len(source.unsubscribed) == 1


class TestRecordStore:
    """Tests for RecordStore."""

    def test_snapshot_replaces_everything(self):
        """Test that nothing from the previous snapshot survives."""
        store = RecordStore(ExpenseRecord)
        store.apply_snapshot(Snapshot.of("expenses", [("a", {"amount": 1}), ("b", {"amount": 2})]))
        store.apply_snapshot(Snapshot.of("expenses", [("c", {"amount": 3})]))

        assert store.ids() == ["c"]
        assert len(store) == 1

    def test_empty_snapshot_empties_store(self):
        """Test that an empty snapshot is a valid, loaded state."""
        store = RecordStore(ExpenseRecord)
        assert not store.loaded
        store.apply_snapshot(Snapshot.of("expenses", [("a", {})]))
        store.apply_snapshot(Snapshot.of("expenses", []))

        assert store.loaded
        assert store.records() == ()

    def test_keeps_snapshot_order(self):
        """Test that records are listed in snapshot order."""
        store = RecordStore(InvestmentRecord)
        store.apply_snapshot(Snapshot.of("investments", [("z", {}), ("a", {}), ("m", {})]))
        assert [r.id for r in store] == ["z", "a", "m"]

    def test_malformed_fields_do_not_drop_records(self):
        """Test that bad field values fall back instead of losing the record."""
        store = RecordStore(ExpenseRecord)
        store.apply_snapshot(Snapshot.of("expenses", [
            ("a", {"amount": "?", "date": "soon", "category": 7}),
        ]))
        assert store.ids() == ["a"]

    def test_wrongly_typed_text_field_keeps_record(self):
        """Test that a non-text bill url does not drop the expense or its money."""
        store = RecordStore(ExpenseRecord)
        store.apply_snapshot(Snapshot.of("expenses", [
            ("a", {"amount": 100, "billUrl": 123}),
            ("b", {"amount": 5}),
        ]))

        assert store.ids() == ["a", "b"]
        assert store.records()[0].amount == Decimal("100")
        assert store.records()[0].bill_url is None

    def test_same_snapshot_twice_gives_same_metrics(self):
        """Test that re-applying a snapshot changes nothing downstream."""
        snapshot = Snapshot.of("expenses", [
            ("a", {"amount": 10, "category": "Food", "date": "2024-01-02"}),
            ("b", {"amount": "2.5", "category": "Bills"}),
        ])
        store = RecordStore(ExpenseRecord)

        store.apply_snapshot(snapshot)
        first = compute_metrics(store.records(), [], [])
        store.apply_snapshot(snapshot)
        second = compute_metrics(store.records(), [], [])

        assert first == second
        assert store.ids() == ["a", "b"]

    def test_unusable_document_is_skipped(self):
        """Test that a document without an id is skipped, not fatal."""
        store = RecordStore(ExpenseRecord)
        store.apply_snapshot(Snapshot.of("expenses", [("", {}), ("ok", {})]))
        assert store.ids() == ["ok"]


class TestManualScheduler:
    """Tests for ManualScheduler."""

    def test_fires_when_due(self):
        """Test that callbacks wait for the clock."""
        scheduler = ManualScheduler()
        fired = []
        scheduler.call_later(5, lambda: fired.append("a"))

        assert scheduler.advance(4.9) == 0
        assert scheduler.advance(0.1) == 1
        assert fired == ["a"]
        assert scheduler.pending == 0

    def test_cancelled_timer_never_fires(self):
        """Test cancellation."""
        scheduler = ManualScheduler()
        fired = []
        timer = scheduler.call_later(1, lambda: fired.append("a"))
        timer.cancel()

        assert timer.cancelled
        assert scheduler.advance(10) == 0
        assert fired == []

    def test_chained_timers_within_window(self):
        """Test that a timer scheduled by a callback fires if due in the window."""
        scheduler = ManualScheduler()
        fired = []

        def first():
            fired.append(scheduler.now)
            scheduler.call_later(5, lambda: fired.append(scheduler.now))

        scheduler.call_later(5, first)
        assert scheduler.advance(12) == 2
        assert fired == [5, 10]
        assert scheduler.now == 12


class TestAsyncioScheduler:
    """Tests for AsyncioScheduler."""

    def test_runs_on_event_loop(self):
        """Test that callbacks run on the loop after the delay."""
        fired = []

        async def scenario():
            scheduler = AsyncioScheduler()
            scheduler.call_later(0.01, lambda: fired.append("a"))
            cancelled = scheduler.call_later(0.01, lambda: fired.append("b"))
            cancelled.cancel()
            await asyncio.sleep(0.05)
            return cancelled.cancelled

        assert asyncio.run(scenario()) is True
        assert fired == ["a"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
