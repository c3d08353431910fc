"""
Tests for configuration and application wiring
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.main import format_amount, summarize
from finance_tracker.config import (
    AppSettings,
    FirestoreSettings,
    StreamSettings,
    get_settings,
    validate_all_settings,
)
from finance_tracker.dashboard import Dashboard
from finance_tracker.models.dashboard import DashboardState
from finance_tracker.orchestrator import (
    SettingsIdentityProvider,
    create_app_components,
    create_source,
)
from finance_tracker.services.transport import InMemoryChangeSource


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestStreamSettings:
    """Tests for StreamSettings."""

    def test_defaults(self, monkeypatch):
        """Test default reconnect behaviour."""
        monkeypatch.delenv("STREAM_RETRY_DELAY_SECONDS", raising=False)
        monkeypatch.delenv("STREAM_RESILIENT_COLLECTIONS", raising=False)
        settings = StreamSettings()
        assert settings.retry_delay_seconds == 5.0
        assert settings.resilient_collections_list == ["subscriptions"]

    def test_environment_override(self, monkeypatch):
        """Test configuration through STREAM_ variables."""
        monkeypatch.setenv("STREAM_RETRY_DELAY_SECONDS", "2.5")
        monkeypatch.setenv("STREAM_RESILIENT_COLLECTIONS", " Expenses, subscriptions ,")
        settings = StreamSettings()
        assert settings.retry_delay_seconds == 2.5
        assert settings.resilient_collections_list == ["expenses", "subscriptions"]

    def test_rejects_zero_delay(self):
        """Test that the retry delay must be positive."""
        with pytest.raises(ValidationError):
            StreamSettings(retry_delay_seconds=0)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch):
        """Test presentation defaults."""
        monkeypatch.delenv("RECENT_TRANSACTIONS_LIMIT", raising=False)
        settings = AppSettings(_env_file=None)
        assert settings.recent_transactions_limit == 5

    def test_limit_bounds(self):
        """Test that the recent transactions limit is validated."""
        with pytest.raises(ValidationError):
            AppSettings(recent_transactions_limit=0)


class TestFirestoreSettings:
    """Tests for FirestoreSettings."""

    def test_requires_project(self, monkeypatch):
        """Test that the project id is required."""
        monkeypatch.delenv("FIRESTORE_PROJECT_ID", raising=False)
        monkeypatch.delenv("FIRESTORE_CREDENTIALS_PATH", raising=False)
        with pytest.raises(ValidationError):
            FirestoreSettings()

    def test_collection_names(self, tmp_path):
        """Test the logical-to-stored collection mapping."""
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}")
        settings = FirestoreSettings(
            project_id="demo",
            credentials_path=str(credentials),
            expenses_collection="spend",
        )
        assert settings.collection_names["expenses"] == "spend"
        assert settings.collection_names["investments"] == "investments"

    def test_validate_all_settings_reports_missing_firestore(self, monkeypatch):
        """Test the startup check."""
        monkeypatch.delenv("FIRESTORE_PROJECT_ID", raising=False)
        monkeypatch.delenv("FIRESTORE_CREDENTIALS_PATH", raising=False)
        results = validate_all_settings()
        assert results["firestore"] is False
        assert results["streams"] is True


class TestOrchestrator:
    """Tests for application wiring."""

    def test_identity_from_settings(self):
        """Test reading the user id from settings."""
        assert SettingsIdentityProvider(AppSettings(user_id="u1")).current_user_id() == "u1"
        assert SettingsIdentityProvider(AppSettings(user_id="")).current_user_id() is None

    def test_in_memory_source(self):
        """Test that Firestore can be switched off."""
        assert isinstance(create_source(use_firestore=False), InMemoryChangeSource)

    def test_unconfigured_firestore_falls_back(self, monkeypatch):
        """Test the fallback when Firestore settings are missing."""
        monkeypatch.delenv("FIRESTORE_PROJECT_ID", raising=False)
        monkeypatch.delenv("FIRESTORE_CREDENTIALS_PATH", raising=False)
        assert isinstance(create_source(use_firestore=True), InMemoryChangeSource)

    def test_create_app_components(self, monkeypatch):
        """Test that the dashboard is wired to the chosen source."""
        monkeypatch.setenv("USER_ID", "u1")
        dashboard, source = create_app_components(use_firestore=False)
        assert isinstance(dashboard, Dashboard)
        assert isinstance(source, InMemoryChangeSource)


class TestRunnerFormatting:
    """Tests for the headless runner's output."""

    def test_format_amount(self):
        """Test currency formatting."""
        assert format_amount(Decimal("1234.5"), "₹") == "₹1234.50"

    def test_summarize_empty_state(self):
        """Test summarizing a state with no data."""
        summary = summarize(DashboardState(loading=False), "$")
        assert summary["net_worth"] == "$0.00"
        assert summary["recent"] == []
        assert summary["degraded"] == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
