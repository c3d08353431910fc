"""
Abstract Change-Notification Interface

DESIGN DECISION: We define an abstract interface for the remote document
store's subscribe API. This allows us to:
1. Swap Firestore for another realtime backend later
2. Use an in-memory source for testing and local runs
3. Keep the aggregation logic decoupled from any SDK

The interface is intentionally small - the live dashboard only ever
subscribes to one collection filtered by owner, and unsubscribes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from finance_tracker.models.snapshot import Notification


Listener = Callable[[Notification], None]


class ChangeNotificationSource(ABC):
    """
    Abstract interface for a realtime document store.

    Any backend (Firestore, an in-memory fake, ...) must implement these
    methods.
    """

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        user_id: str,
        listener: Listener,
    ) -> Any:
        """
        Start delivering snapshots of a collection filtered to one user.

        Args:
            collection: Logical collection name (expenses, subscriptions,
                        investments)
            user_id: Owner whose documents are included
            listener: Called with a Snapshot for every change, or with a
                      SnapshotError when a delivery fails

        Returns:
            An opaque handle to pass to unsubscribe()

        Raises:
            Any exception if the subscription cannot be established.
            Callers treat this as a setup failure.
        """
        pass

    @abstractmethod
    def unsubscribe(self, handle: Any) -> None:
        """
        Stop deliveries for a handle returned by subscribe().

        Must be safe to call more than once for the same handle.
        """
        pass


class IdentityProvider(ABC):
    """Exposes the currently signed-in user, if any."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """The signed-in user's id, or None when nobody is signed in."""
        pass


class StaticIdentityProvider(IdentityProvider):
    """Identity fixed at construction (headless runs, tests)."""

    def __init__(self, user_id: Optional[str]):
        self._user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self._user_id or None
