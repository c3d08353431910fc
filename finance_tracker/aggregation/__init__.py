"""Aggregation package: pure computation of derived metrics."""

from finance_tracker.aggregation.engine import (
    compute_metrics,
    expense_by_category,
    investment_return,
    portfolio_by_type,
    portfolio_summary,
    recent_transactions,
    return_percentage,
    subscription_totals,
    total_expenses,
    total_subscriptions,
)

__all__ = [
    "compute_metrics",
    "expense_by_category",
    "investment_return",
    "portfolio_by_type",
    "portfolio_summary",
    "recent_transactions",
    "return_percentage",
    "subscription_totals",
    "total_expenses",
    "total_subscriptions",
]
