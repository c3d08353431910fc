"""Services package."""

from finance_tracker.services.transport import (
    ChangeNotificationSource,
    IdentityProvider,
    InMemoryChangeSource,
    Listener,
    StaticIdentityProvider,
)

__all__ = [
    "ChangeNotificationSource",
    "IdentityProvider",
    "InMemoryChangeSource",
    "Listener",
    "StaticIdentityProvider",
]
