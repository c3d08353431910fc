"""
Configuration Management for the Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which external services the live dashboard
talks to, and ensures required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirestoreSettings(BaseSettings):
    """Remote document store (Firestore) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Google Cloud project hosting the Firestore database"
    )
    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )

    # Collection names within the database
    expenses_collection: str = Field(
        default="expenses",
        description="Collection holding expense documents"
    )
    subscriptions_collection: str = Field(
        default="subscriptions",
        description="Collection holding subscription documents"
    )
    investments_collection: str = Field(
        default="investments",
        description="Collection holding investment documents"
    )
    owner_field: str = Field(
        default="userId",
        description="Document field holding the owning user's id"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Firestore credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    @property
    def collection_names(self) -> dict[str, str]:
        """Map logical stream names to the configured collection names."""
        return {
            "expenses": self.expenses_collection,
            "subscriptions": self.subscriptions_collection,
            "investments": self.investments_collection,
        }


class StreamSettings(BaseSettings):
    """Live stream and reconnect behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="STREAM_",
        extra="ignore"
    )

    retry_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="Fixed delay between reconnect attempts"
    )
    resilient_collections: str = Field(
        default="subscriptions",
        description="Comma-separated streams wrapped with automatic reconnect"
    )
    watch_check_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How often remote watches are checked for liveness"
    )

    @property
    def resilient_collections_list(self) -> list[str]:
        """Get resilient stream names as a list."""
        return [
            name.strip().lower()
            for name in self.resilient_collections.split(",")
            if name.strip()
        ]


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Identity used by headless runs (the web client gets it from auth)
    user_id: Optional[str] = Field(
        default=None,
        description="Id of the user whose data is streamed"
    )

    # Presentation hints
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many expenses the recent-transactions view shows"
    )
    currency_symbol: str = Field(
        default="₹",
        max_length=5,
        description="Currency symbol used when formatting amounts"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def firestore(self) -> FirestoreSettings:
        return FirestoreSettings()

    @property
    def streams(self) -> StreamSettings:
        return StreamSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firestore
        results["firestore"] = True
    except Exception as e:
        results["firestore"] = False
        results["firestore_error"] = str(e)

    try:
        _ = settings.streams
        results["streams"] = True
    except Exception as e:
        results["streams"] = False
        results["streams_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
