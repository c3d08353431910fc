"""
Data Models Package

This package contains all Pydantic models used by the finance tracker.
All data flowing through the live dashboard must conform to these schemas.
"""

from finance_tracker.models.records import (
    BillingFrequency,
    ExpenseCategory,
    ExpenseRecord,
    InvestmentRecord,
    InvestmentType,
    Record,
    SubscriptionCategory,
    SubscriptionRecord,
)
from finance_tracker.models.snapshot import (
    Document,
    Notification,
    Snapshot,
    SnapshotError,
)
from finance_tracker.models.metrics import (
    DerivedMetrics,
    InvestmentReturn,
    PortfolioSummary,
    SubscriptionTotals,
)
from finance_tracker.models.dashboard import (
    DashboardState,
    StreamState,
    StreamStatus,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "BillingFrequency",
    "ExpenseCategory",
    "ExpenseRecord",
    "InvestmentRecord",
    "InvestmentType",
    "Record",
    "SubscriptionCategory",
    "SubscriptionRecord",
    # Change notifications
    "Document",
    "Notification",
    "Snapshot",
    "SnapshotError",
    # Derived metrics
    "DerivedMetrics",
    "InvestmentReturn",
    "PortfolioSummary",
    "SubscriptionTotals",
    # Dashboard
    "DashboardState",
    "StreamState",
    "StreamStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
