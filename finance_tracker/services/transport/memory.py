"""
In-Memory Change-Notification Source

An in-process document store implementing the subscribe contract. Used by
the test-suite and for local runs without a cloud project.

Behaves like the remote store in the ways that matter to the dashboard:
- every change delivers a full snapshot to each matching listener
- documents are filtered by owner and kept in insertion order
- delivery failures are error notifications, not exceptions
- subscribing can be made to fail, to exercise setup errors
"""

from itertools import count
from typing import Any, Iterable, Mapping, Optional

from finance_tracker.errors import TransportError
from finance_tracker.models.snapshot import Document, Snapshot, SnapshotError
from finance_tracker.services.transport.interface import (
    ChangeNotificationSource,
    Listener,
)


OWNER_FIELD = "userId"


class _Watch:
    """One active subscription."""

    def __init__(self, watch_id: int, collection: str, user_id: str, listener: Listener):
        self.watch_id = watch_id
        self.collection = collection
        self.user_id = user_id
        self.listener = listener
        self.active = True


class InMemoryChangeSource(ChangeNotificationSource):
    """
    Document store kept in dictionaries.

    Snapshots are delivered synchronously, on the caller's thread, which
    keeps tests deterministic.
    """

    def __init__(self, deliver_on_subscribe: bool = True):
        """
        Args:
            deliver_on_subscribe: Send the current snapshot as soon as a
                                  listener subscribes, like a realtime
                                  store's initial load.
        """
        self._deliver_on_subscribe = deliver_on_subscribe
        self._documents: dict[str, dict[str, dict[str, Any]]] = {}
        self._watches: dict[int, _Watch] = {}
        self._ids = count(1)
        self._doc_ids = count(1)
        self._subscribe_failures: dict[str, int] = {}
        self._unavailable: set[str] = set()

    # -------------------------------------------------------------------------
    # ChangeNotificationSource
    # -------------------------------------------------------------------------

    def subscribe(self, collection: str, user_id: str, listener: Listener) -> _Watch:
        if collection in self._unavailable:
            raise TransportError(f"Collection unavailable: {collection}")
        remaining = self._subscribe_failures.get(collection, 0)
        if remaining:
            self._subscribe_failures[collection] = remaining - 1
            raise TransportError(f"Subscribe rejected: {collection}")

        watch = _Watch(next(self._ids), collection, user_id, listener)
        self._watches[watch.watch_id] = watch
        if self._deliver_on_subscribe:
            watch.listener(self.snapshot(collection, user_id))
        return watch

    def unsubscribe(self, handle: _Watch) -> None:
        handle.active = False
        self._watches.pop(handle.watch_id, None)

    # -------------------------------------------------------------------------
    # Mutations (what the forms would do through the real store)
    # -------------------------------------------------------------------------

    def add(self, collection: str, user_id: str, fields: Mapping[str, Any]) -> str:
        """Add a document with a generated id and return the id."""
        doc_id = f"{collection[:3]}-{next(self._doc_ids)}"
        self.put(collection, doc_id, user_id, fields)
        return doc_id

    def put(
        self,
        collection: str,
        doc_id: str,
        user_id: str,
        fields: Mapping[str, Any],
    ) -> None:
        """Create or overwrite a document, then notify listeners."""
        data = dict(fields)
        data[OWNER_FIELD] = user_id
        self._documents.setdefault(collection, {})[doc_id] = data
        self._notify(collection)

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        """Change some fields of an existing document, then notify listeners."""
        current = self._documents.get(collection, {}).get(doc_id)
        if current is None:
            raise KeyError(f"No document {doc_id} in {collection}")
        # Stored documents are replaced, never edited in place
        self._documents[collection][doc_id] = {**current, **changes}
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document, then notify listeners."""
        self._documents.get(collection, {}).pop(doc_id, None)
        self._notify(collection)

    def replace(
        self,
        collection: str,
        user_id: str,
        documents: Iterable[tuple[str, Mapping[str, Any]]],
    ) -> None:
        """Replace all of one user's documents in a collection at once."""
        kept = {
            doc_id: data
            for doc_id, data in self._documents.get(collection, {}).items()
            if data.get(OWNER_FIELD) != user_id
        }
        for doc_id, fields in documents:
            data = dict(fields)
            data[OWNER_FIELD] = user_id
            kept[doc_id] = data
        self._documents[collection] = kept
        self._notify(collection)

    # -------------------------------------------------------------------------
    # Failure injection
    # -------------------------------------------------------------------------

    def fail(self, collection: str, message: str = "connection lost") -> None:
        """Deliver an error notification to every listener of a collection."""
        for watch in self._matching(collection):
            if not watch.active:
                continue
            watch.listener(SnapshotError(
                collection=collection,
                error=TransportError(message),
            ))

    def fail_next_subscribes(self, collection: str, times: int = 1) -> None:
        """Make the next `times` subscribe calls for a collection raise."""
        self._subscribe_failures[collection] = times

    def set_available(self, collection: str, available: bool) -> None:
        """While unavailable, every subscribe for the collection raises."""
        if available:
            self._unavailable.discard(collection)
        else:
            self._unavailable.add(collection)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def snapshot(self, collection: str, user_id: str) -> Snapshot:
        """Current documents of one user, in insertion order."""
        documents = [
            Document(id=doc_id, data=dict(data))
            for doc_id, data in self._documents.get(collection, {}).items()
            if data.get(OWNER_FIELD) == user_id
        ]
        return Snapshot(collection=collection, documents=tuple(documents))

    def listener_count(self, collection: Optional[str] = None) -> int:
        return sum(
            1 for watch in self._watches.values()
            if collection is None or watch.collection == collection
        )

    def _matching(self, collection: str) -> list[_Watch]:
        # Copy: listeners may unsubscribe while being notified
        return [w for w in self._watches.values() if w.collection == collection]

    def _notify(self, collection: str) -> None:
        for watch in self._matching(collection):
            if watch.active:
                watch.listener(self.snapshot(collection, watch.user_id))
