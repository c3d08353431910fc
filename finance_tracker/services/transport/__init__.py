"""
Transport Services Package

Provides the abstract change-notification interface and its
implementations. Firestore is the production backend; the in-memory
source backs tests and local runs.

The Firestore adapter lives in its own module and is imported from there,
so the SDK is only loaded by code that streams from Firestore.
"""

from finance_tracker.services.transport.interface import (
    ChangeNotificationSource,
    IdentityProvider,
    Listener,
    StaticIdentityProvider,
)
from finance_tracker.services.transport.memory import InMemoryChangeSource

__all__ = [
    # Interfaces
    "ChangeNotificationSource",
    "IdentityProvider",
    "Listener",
    "StaticIdentityProvider",
    # In-memory implementation
    "InMemoryChangeSource",
]
