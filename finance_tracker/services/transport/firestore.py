"""
Firestore Change-Notification Source

DESIGN DECISION: Firestore is the production backend because the web
client already writes expenses, subscriptions and investments there, and
its realtime listeners deliver full query snapshots on every change.

TRADEOFFS:
- Listener callbacks run on an SDK background thread. We hop every
  notification onto the asyncio loop with call_soon_threadsafe so the
  rest of the dashboard stays single-threaded.
- The Python SDK has no error callback: a watch that dies just stops.
  We check each watch's liveness on a timer and turn a dead watch into
  an error notification.
"""

import asyncio
from typing import Any, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import FirestoreSettings, StreamSettings, get_settings
from finance_tracker.errors import SetupError, TransportError
from finance_tracker.models.snapshot import Document, Snapshot, SnapshotError
from finance_tracker.services.transport.interface import (
    ChangeNotificationSource,
    Listener,
)


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[FirestoreSettings] = None):
        self._client: Optional[firestore.Client] = None
        self._settings = settings or get_settings().firestore

    @property
    def settings(self) -> FirestoreSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(SetupError),
        reraise=True,
    )
    def connect(self) -> firestore.Client:
        """
        Establish connection to Firestore.

        Uses service account credentials for authentication. Call it once
        while wiring the app: retries sleep, so it must not run on the event
        loop while streams are being served. A bad credentials file is a
        SetupError and is not retried.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                )
            except FileNotFoundError:
                raise SetupError(
                    f"Firestore credentials file not found: {self._settings.credentials_path}"
                )
            except (ValueError, KeyError) as e:
                raise SetupError(f"Invalid Firestore credentials: {e}")

            try:
                self._client = firestore.Client(
                    project=self._settings.project_id,
                    credentials=credentials,
                )
            except Exception as e:
                raise TransportError(f"Failed to connect to Firestore: {e}")

        return self._client

    def owned_query(self, collection: str, user_id: str):
        """Query for one user's documents in a configured collection."""
        name = self._settings.collection_names.get(collection, collection)
        return self.connect().collection(name).where(
            filter=FieldFilter(self._settings.owner_field, "==", user_id)
        )


class _FirestoreWatch:
    """Handle for one live Firestore listener."""

    def __init__(self, collection: str, listener: Listener):
        self.collection = collection
        self.listener = listener
        self.watch: Any = None
        self.liveness_timer: Optional[asyncio.TimerHandle] = None
        self.closed = False

    def deliver(self, notification) -> None:
        # Runs on the event loop
        if not self.closed:
            self.listener(notification)


class FirestoreChangeSource(ChangeNotificationSource):
    """
    Firestore implementation of the change-notification source.

    Must be used from a running asyncio event loop (or be given one).
    """

    def __init__(
        self,
        client: Optional[FirestoreClient] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        stream_settings: Optional[StreamSettings] = None,
    ):
        self._client = client or FirestoreClient()
        self._loop = loop
        self._check_interval = (
            stream_settings or get_settings().streams
        ).watch_check_interval_seconds

    def subscribe(self, collection: str, user_id: str, listener: Listener) -> _FirestoreWatch:
        loop = self._loop or asyncio.get_running_loop()
        handle = _FirestoreWatch(collection, listener)

        def on_snapshot(docs, changes, read_time) -> None:
            # SDK background thread
            try:
                notification = Snapshot(
                    collection=collection,
                    documents=tuple(
                        Document(id=doc.id, data=doc.to_dict() or {})
                        for doc in docs
                    ),
                )
            except Exception as e:
                notification = SnapshotError(
                    collection=collection,
                    error=TransportError(f"Unreadable snapshot: {e}"),
                )
            loop.call_soon_threadsafe(handle.deliver, notification)

        query = self._client.owned_query(collection, user_id)
        handle.watch = query.on_snapshot(on_snapshot)
        self._schedule_liveness_check(loop, handle)
        return handle

    def unsubscribe(self, handle: _FirestoreWatch) -> None:
        if handle.closed:
            return
        handle.closed = True
        if handle.liveness_timer is not None:
            handle.liveness_timer.cancel()
            handle.liveness_timer = None
        if handle.watch is not None:
            handle.watch.unsubscribe()

    def _schedule_liveness_check(
        self,
        loop: asyncio.AbstractEventLoop,
        handle: _FirestoreWatch,
    ) -> None:
        def check() -> None:
            handle.liveness_timer = None
            if handle.closed:
                return
            if handle.watch is not None and not handle.watch.is_active:
                handle.deliver(SnapshotError(
                    collection=handle.collection,
                    error=TransportError("Firestore watch stream terminated"),
                ))
                return
            self._schedule_liveness_check(loop, handle)

        handle.liveness_timer = loop.call_later(self._check_interval, check)
