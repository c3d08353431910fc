"""
Stream Subscription

Wraps one logical collection filtered to the current user and turns the
source's change notifications into an ordered series of snapshots.

No retry happens here: a delivery error is passed straight to the
subscriber. Retry policy belongs to ResilientSubscription.
"""

from typing import Any, Optional

import structlog

from finance_tracker.errors import SetupError
from finance_tracker.models.snapshot import Notification
from finance_tracker.services.transport.interface import (
    ChangeNotificationSource,
    Listener,
)


logger = structlog.get_logger(__name__)


class StreamHandle:
    """
    An owned, open stream.

    Delivers notifications to its listener until closed. Closing is
    idempotent; anything the source delivers afterwards is dropped.
    """

    def __init__(
        self,
        source: ChangeNotificationSource,
        collection: str,
        user_id: str,
        listener: Listener,
    ):
        self._source = source
        self.collection = collection
        self.user_id = user_id
        self._listener = listener
        self._source_handle: Optional[Any] = None
        self._closed = False
        self.delivered = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, notification: Notification) -> None:
        if self._closed:
            return
        self.delivered += 1
        self._listener(notification)

    def _attach(self, source_handle: Any) -> None:
        self._source_handle = source_handle
        if self._closed:
            # Closed by the listener while the initial snapshot was delivered
            self._release()

    def _release(self) -> None:
        source_handle, self._source_handle = self._source_handle, None
        if source_handle is not None:
            self._source.unsubscribe(source_handle)

    def close(self) -> None:
        """Stop notifications and release the source subscription."""
        if self._closed:
            return
        self._closed = True
        self._release()
        logger.debug("stream_handle_closed", collection=self.collection)


class StreamSubscription:
    """
    Opens handles on one collection.

    Usage:
        subscription = StreamSubscription(source, "expenses")
        handle = subscription.open(user_id, on_notification)
        ...
        subscription.close(handle)
    """

    def __init__(self, source: ChangeNotificationSource, collection: str):
        self._source = source
        self.collection = collection

    def open(self, user_id: Optional[str], listener: Listener) -> StreamHandle:
        """
        Start receiving snapshots for one user.

        Raises:
            SetupError: If there is no user or the source refuses the
                        subscription.
        """
        if not user_id:
            raise SetupError(f"No signed-in user; cannot open {self.collection}")

        handle = StreamHandle(self._source, self.collection, user_id, listener)
        try:
            source_handle = self._source.subscribe(
                self.collection, user_id, handle._deliver,
            )
        except Exception as e:
            handle._closed = True
            raise SetupError(f"Could not subscribe to {self.collection}: {e}") from e

        handle._attach(source_handle)
        logger.debug("stream_handle_opened", collection=self.collection)
        return handle

    def close(self, handle: StreamHandle) -> None:
        """Close a handle. Safe to call any number of times."""
        handle.close()
