"""
Aggregation Engine

DESIGN DECISION: Aggregation is a PURE function of the current records.
No caches, no deltas, no I/O. Every change to any collection re-runs the
whole computation over the full record sets, so totals can never drift
away from the data through a missed or partial update.

This costs O(records) per change, which is nothing at the volumes of a
personal budget.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from finance_tracker.models.metrics import (
    DerivedMetrics,
    InvestmentReturn,
    PortfolioSummary,
    SubscriptionTotals,
)
from finance_tracker.models.records import (
    BillingFrequency,
    ExpenseCategory,
    ExpenseRecord,
    InvestmentRecord,
    SubscriptionRecord,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
ZERO_DATE = date.min

DEFAULT_RECENT_LIMIT = 5


# =============================================================================
# EXPENSES
# =============================================================================

def total_expenses(expenses: Iterable[ExpenseRecord]) -> Decimal:
    """Sum of all expense amounts."""
    return sum((expense.amount for expense in expenses), ZERO)


def expense_by_category(expenses: Iterable[ExpenseRecord]) -> dict[str, Decimal]:
    """
    Expense totals per category.

    Categories appear in the order they are first seen, not sorted.
    Records without a recognised category count as "Other".
    """
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        category = (expense.category or ExpenseCategory.OTHER).value
        totals[category] = totals.get(category, ZERO) + expense.amount
    return totals


def recent_transactions(
    expenses: Sequence[ExpenseRecord],
    limit: int = DEFAULT_RECENT_LIMIT,
) -> tuple[ExpenseRecord, ...]:
    """
    Newest expenses first, at most `limit` of them.

    Ties keep snapshot order (the sort is stable). Undated expenses sort
    after every dated one.
    """
    ordered = sorted(
        expenses,
        key=lambda expense: (expense.date is not None, expense.date or ZERO_DATE),
        reverse=True,
    )
    return tuple(ordered[:limit])


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

def subscription_totals(subscriptions: Iterable[SubscriptionRecord]) -> SubscriptionTotals:
    """Recurring spend of active subscriptions, split by billing frequency."""
    totals = {frequency: ZERO for frequency in BillingFrequency}
    active_count = 0
    for subscription in subscriptions:
        if not subscription.active:
            continue
        active_count += 1
        totals[subscription.frequency] += subscription.amount

    return SubscriptionTotals(
        weekly=totals[BillingFrequency.WEEKLY],
        monthly=totals[BillingFrequency.MONTHLY],
        yearly=totals[BillingFrequency.YEARLY],
        active_count=active_count,
    )


def total_subscriptions(subscriptions: Iterable[SubscriptionRecord]) -> Decimal:
    """Sum of active subscription amounts; paused ones are excluded."""
    return subscription_totals(subscriptions).total


# =============================================================================
# INVESTMENTS
# =============================================================================

def return_percentage(returns: Decimal, principal: Decimal) -> Decimal:
    """Returns as a percentage of principal; 0 when nothing was invested."""
    if principal == 0:
        return ZERO
    return returns / principal * HUNDRED


def investment_return(investment: InvestmentRecord) -> InvestmentReturn:
    """Gain or loss of a single holding."""
    principal = investment.principal
    current = investment.effective_value
    returns = current - principal
    return InvestmentReturn(
        investment_id=investment.id,
        name=investment.name,
        type=investment.type,
        principal=principal,
        current_value=current,
        returns=returns,
        return_percentage=return_percentage(returns, principal),
    )


def portfolio_summary(investments: Iterable[InvestmentRecord]) -> PortfolioSummary:
    """Totals across all holdings."""
    principal = ZERO
    current = ZERO
    for investment in investments:
        principal += investment.principal
        current += investment.effective_value

    returns = current - principal
    return PortfolioSummary(
        total_invested_principal=principal,
        total_current_value=current,
        total_returns=returns,
        return_percentage=return_percentage(returns, principal),
    )


def portfolio_by_type(investments: Iterable[InvestmentRecord]) -> dict[str, Decimal]:
    """
    Current value per investment type.

    Types whose total is exactly zero are left out so idle types are not
    charted.
    """
    totals: dict[str, Decimal] = {}
    for investment in investments:
        key = investment.type.value
        totals[key] = totals.get(key, ZERO) + investment.effective_value
    return {key: value for key, value in totals.items() if value != 0}


# =============================================================================
# EVERYTHING
# =============================================================================

def compute_metrics(
    expenses: Sequence[ExpenseRecord],
    subscriptions: Sequence[SubscriptionRecord],
    investments: Sequence[InvestmentRecord],
) -> DerivedMetrics:
    """
    Compute every derived metric from the current records.

    Deterministic: the same inputs always give the same result.
    """
    expenses_total = total_expenses(expenses)
    subscription_load = subscription_totals(subscriptions)
    portfolio = portfolio_summary(investments)

    return DerivedMetrics(
        total_expenses=expenses_total,
        expense_by_category=expense_by_category(expenses),
        subscriptions=subscription_load,
        portfolio=portfolio,
        portfolio_by_type=portfolio_by_type(investments),
        investment_returns=tuple(investment_return(inv) for inv in investments),
        net_worth=(
            portfolio.total_current_value
            - expenses_total
            - subscription_load.total
        ),
    )
