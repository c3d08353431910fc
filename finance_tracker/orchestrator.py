"""
Application Wiring for the Finance Tracker

Builds the live dashboard from configuration: which backend to stream
from, who the user is, how reconnects are scheduled, and where audit
events go.

DESIGN DECISION: The dashboard itself never reads the environment or
picks a backend. Everything it depends on is passed in here, so tests can
hand it an in-memory source and a manual clock instead.
"""

import asyncio
from typing import Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.dashboard import Dashboard
from finance_tracker.services.transport import (
    ChangeNotificationSource,
    IdentityProvider,
    InMemoryChangeSource,
)
from finance_tracker.streams import AsyncioScheduler


logger = structlog.get_logger(__name__)


class SettingsIdentityProvider(IdentityProvider):
    """Reads the user id from application settings (`USER_ID`)."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def current_user_id(self) -> Optional[str]:
        return self._settings.user_id or None


def create_source(
    use_firestore: bool = True,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> ChangeNotificationSource:
    """
    Create the change-notification source.

    Falls back to an empty in-memory source when Firestore is not
    configured or cannot be reached, so the dashboard still starts (and
    shows zeros). Connecting may block while it retries; do not call this
    on a running event loop.
    """
    if not use_firestore:
        return InMemoryChangeSource()

    try:
        from finance_tracker.services.transport.firestore import (
            FirestoreChangeSource,
            FirestoreClient,
        )

        settings = get_settings()
        client = FirestoreClient(settings.firestore)
        # Connect now, while wiring, so no retry sleeps inside subscribe()
        client.connect()
        return FirestoreChangeSource(client, loop=loop, stream_settings=settings.streams)
    except Exception as e:
        # Firestore not configured - continue without it
        logger.warning("firestore_not_configured", error=str(e))
        return InMemoryChangeSource()


def create_app_components(
    use_firestore: bool = True,
    identity: Optional[IdentityProvider] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> tuple[Dashboard, ChangeNotificationSource]:
    """
    Factory function to create all application components.

    Args:
        use_firestore: Whether to stream from Firestore.
                       Set to False to run against an in-memory source.
        identity: Who is signed in. Defaults to the configured user id.
        loop: Event loop for timers and Firestore callbacks. Defaults to
              the running loop.

    Returns:
        (dashboard, source)
    """
    settings = get_settings()
    source = create_source(use_firestore, loop=loop)

    dashboard = Dashboard(
        source=source,
        identity=identity or SettingsIdentityProvider(settings.app),
        scheduler=AsyncioScheduler(loop),
        stream_settings=settings.streams,
        app_settings=settings.app,
        audit_logger=AuditLogger(),
    )
    return dashboard, source
