"""Shared fixtures: an in-memory store, a manual clock and a dashboard factory."""

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, StreamSettings
from finance_tracker.dashboard import Dashboard
from finance_tracker.services.transport import (
    InMemoryChangeSource,
    StaticIdentityProvider,
)
from finance_tracker.streams import ManualScheduler


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class CountingSource(InMemoryChangeSource):
    """In-memory source that remembers every unsubscribe call."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.unsubscribed: list[int] = []

    def unsubscribe(self, handle) -> None:
        self.unsubscribed.append(handle.watch_id)
        super().unsubscribe(handle)


@pytest.fixture
def source():
    return CountingSource()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def stream_settings():
    return StreamSettings(retry_delay_seconds=5.0, resilient_collections="subscriptions")


@pytest.fixture
def app_settings():
    return AppSettings(recent_transactions_limit=5)


@pytest.fixture
def make_dashboard(source, scheduler, stream_settings, app_settings):
    """Build (not open) a dashboard wired to the in-memory source."""
    created = []

    def factory(user_id=USER_ID, source_override=None):
        dashboard = Dashboard(
            source=source_override or source,
            identity=StaticIdentityProvider(user_id),
            scheduler=scheduler,
            stream_settings=stream_settings,
            app_settings=app_settings,
            audit_logger=AuditLogger(),
        )
        created.append(dashboard)
        return dashboard

    yield factory

    for dashboard in created:
        dashboard.close()
