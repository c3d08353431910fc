"""
Record Models for the Finance Tracker

One model per collection streamed from the document store. Documents in
the store are schemaless and use camelCase keys; these models give each
collection a fixed set of fields with explicit optional markers.

DESIGN DECISION: Parsing is lenient, not strict.
Unlike form input, a stored document has already been written and
rejecting it would only hide real money from the totals. Every field
therefore has a documented default that replaces missing or malformed
values:

- monetary amounts  -> 0
- current value     -> unset (falls back to the principal)
- dates             -> unset
- categories/types  -> "Other"
- billing frequency -> monthly
- active flag       -> true
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finance_tracker.utils.coercion import (
    coerce_amount,
    coerce_choice,
    coerce_date,
    coerce_flag,
    coerce_optional_amount,
    coerce_optional_text,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """Categories offered by the expense form."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    OTHER = "Other"


class SubscriptionCategory(str, Enum):
    """Categories offered by the subscription form."""
    ENTERTAINMENT = "Entertainment"
    SOFTWARE = "Software"
    EDUCATION = "Education"
    HEALTH = "Health"
    NEWS = "News"
    OTHER = "Other"


class BillingFrequency(str, Enum):
    """How often a subscription bills."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class InvestmentType(str, Enum):
    """Asset classes an investment can belong to."""
    STOCKS = "Stocks"
    MUTUAL_FUNDS = "Mutual Funds"
    BONDS = "Bonds"
    REAL_ESTATE = "Real Estate"
    CRYPTO = "Crypto"
    GOLD = "Gold"
    FD = "FD"
    OTHER = "Other"


# =============================================================================
# RECORD MODELS
# =============================================================================

class Record(BaseModel):
    """
    Base for all streamed records.

    Records are immutable: a new snapshot produces new record objects,
    existing ones are never edited in place.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Document id in the store"
    )

    @classmethod
    def from_document(cls, doc_id: str, fields: Mapping[str, Any]):
        """Build a record from a raw document (id + stored fields)."""
        data = dict(fields)
        data["id"] = doc_id
        return cls.model_validate(data)


class ExpenseRecord(Record):
    """A single expense, optionally with a photo of the bill."""

    description: str = ""
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount spent"
    )
    category: ExpenseCategory = ExpenseCategory.OTHER
    date: Optional[dt.date] = Field(
        default=None,
        description="Day the money was spent"
    )
    bill_url: Optional[str] = Field(
        default=None,
        alias="billUrl",
        description="Download URL of the attached bill"
    )

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v, "expense.amount")

    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, v: Any) -> ExpenseCategory:
        return coerce_choice(ExpenseCategory, v, ExpenseCategory.OTHER)

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Optional[dt.date]:
        return coerce_date(v, "expense.date")

    @field_validator("bill_url", mode="before")
    @classmethod
    def empty_url_is_unset(cls, v: Any) -> Optional[str]:
        # The form stores "" when no bill was attached
        return coerce_optional_text(v, "expense.billUrl")


class SubscriptionRecord(Record):
    """
    A recurring charge.

    Only active subscriptions count towards recurring spend; paused ones
    stay in the collection so they can be resumed.
    """

    name: str = ""
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount charged every billing period"
    )
    frequency: BillingFrequency = BillingFrequency.MONTHLY
    next_billing: Optional[dt.date] = Field(
        default=None,
        alias="nextBilling",
        description="Next date the subscription bills"
    )
    category: SubscriptionCategory = SubscriptionCategory.OTHER
    active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v, "subscription.amount")

    @field_validator("frequency", mode="before")
    @classmethod
    def parse_frequency(cls, v: Any) -> BillingFrequency:
        return coerce_choice(BillingFrequency, v, BillingFrequency.MONTHLY)

    @field_validator("next_billing", mode="before")
    @classmethod
    def parse_next_billing(cls, v: Any) -> Optional[dt.date]:
        return coerce_date(v, "subscription.nextBilling")

    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, v: Any) -> SubscriptionCategory:
        return coerce_choice(SubscriptionCategory, v, SubscriptionCategory.OTHER)

    @field_validator("active", mode="before")
    @classmethod
    def parse_active(cls, v: Any) -> bool:
        return coerce_flag(v, default=True)


class InvestmentRecord(Record):
    """
    A holding in the portfolio.

    `amount` is the principal originally invested. `current_value` is
    edited by hand as the market moves; until it is set, the holding is
    valued at its principal.
    """

    name: str = ""
    type: InvestmentType = InvestmentType.OTHER
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Principal invested"
    )
    current_value: Optional[Decimal] = Field(
        default=None,
        ge=0,
        alias="currentValue",
        description="Latest market value, if recorded"
    )
    purchase_date: Optional[dt.date] = Field(
        default=None,
        alias="purchaseDate"
    )
    notes: str = ""

    @field_validator("name", "notes", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, v: Any) -> InvestmentType:
        return coerce_choice(InvestmentType, v, InvestmentType.OTHER)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v, "investment.amount")

    @field_validator("current_value", mode="before")
    @classmethod
    def parse_current_value(cls, v: Any) -> Optional[Decimal]:
        return coerce_optional_amount(v, "investment.currentValue")

    @field_validator("purchase_date", mode="before")
    @classmethod
    def parse_purchase_date(cls, v: Any) -> Optional[dt.date]:
        return coerce_date(v, "investment.purchaseDate")

    @property
    def principal(self) -> Decimal:
        return self.amount

    @property
    def effective_value(self) -> Decimal:
        """Current value, or the principal when no value was recorded."""
        if self.current_value is None:
            return self.amount
        return self.current_value
