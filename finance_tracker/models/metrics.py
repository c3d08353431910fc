"""
Derived Metric Models

Values computed from the current record stores. They are never
persisted and carry no state between recomputations.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.records import BillingFrequency, InvestmentType


ZERO = Decimal("0")


class InvestmentReturn(BaseModel):
    """Gain or loss of one holding."""
    model_config = ConfigDict(frozen=True)

    investment_id: str
    name: str
    type: InvestmentType
    principal: Decimal
    current_value: Decimal
    returns: Decimal = Field(
        ...,
        description="Current value minus principal (may be negative)"
    )
    return_percentage: Decimal = Field(
        ...,
        description="Returns as a percentage of principal, 0 when nothing was invested"
    )

    @property
    def is_profit(self) -> bool:
        return self.returns >= 0


class SubscriptionTotals(BaseModel):
    """Recurring spend of active subscriptions, split by billing frequency."""
    model_config = ConfigDict(frozen=True)

    weekly: Decimal = ZERO
    monthly: Decimal = ZERO
    yearly: Decimal = ZERO
    active_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.weekly + self.monthly + self.yearly

    def for_frequency(self, frequency: BillingFrequency) -> Decimal:
        return getattr(self, frequency.value)


class PortfolioSummary(BaseModel):
    """Aggregate position of all holdings."""
    model_config = ConfigDict(frozen=True)

    total_invested_principal: Decimal = ZERO
    total_current_value: Decimal = ZERO
    total_returns: Decimal = ZERO
    return_percentage: Decimal = ZERO


class DerivedMetrics(BaseModel):
    """
    Everything the dashboard shows, computed from the three collections.

    INVARIANTS:
    - expense_by_category values sum to total_expenses
    - net_worth == total_current_value - total_expenses - total_subscriptions
    - portfolio_by_type never contains a zero entry
    """
    model_config = ConfigDict(frozen=True)

    total_expenses: Decimal = ZERO
    expense_by_category: dict[str, Decimal] = Field(default_factory=dict)

    subscriptions: SubscriptionTotals = Field(default_factory=SubscriptionTotals)

    portfolio: PortfolioSummary = Field(default_factory=PortfolioSummary)
    portfolio_by_type: dict[str, Decimal] = Field(default_factory=dict)
    investment_returns: tuple[InvestmentReturn, ...] = ()

    net_worth: Decimal = ZERO

    @property
    def total_subscriptions(self) -> Decimal:
        return self.subscriptions.total

    @property
    def monthly_subscriptions(self) -> Decimal:
        return self.subscriptions.monthly

    @property
    def yearly_subscriptions(self) -> Decimal:
        return self.subscriptions.yearly

    @property
    def total_invested_principal(self) -> Decimal:
        return self.portfolio.total_invested_principal

    @property
    def total_current_value(self) -> Decimal:
        return self.portfolio.total_current_value

    @property
    def total_returns(self) -> Decimal:
        return self.portfolio.total_returns

    @property
    def return_percentage(self) -> Decimal:
        return self.portfolio.return_percentage
