"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    FirestoreSettings,
    Settings,
    StreamSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "FirestoreSettings",
    "Settings",
    "StreamSettings",
    "get_settings",
    "validate_all_settings",
]
