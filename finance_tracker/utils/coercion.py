"""Helpers that turn loosely-typed document fields into typed values.

Documents come from a schemaless store and were written by forms that
did not always validate their input. A malformed field must never take
the whole collection down, so every helper here has a lenient variant
that falls back to a documented default and logs the recovery.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, TypeVar

import structlog

from finance_tracker.errors import DataShapeError


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

E = TypeVar("E", bound=Enum)


def parse_amount(value) -> Decimal:
    """Parse a monetary value strictly.

    Raises:
        DataShapeError: If the value is not a finite, non-negative number.
    """
    if isinstance(value, bool):
        raise DataShapeError(f"Boolean is not an amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise DataShapeError(f"Unparsable amount: {value!r}") from e
    if not amount.is_finite():
        raise DataShapeError(f"Non-finite amount: {value!r}")
    if amount < 0:
        raise DataShapeError(f"Negative amount: {value!r}")
    return amount


def coerce_amount(value, field: str = "amount") -> Decimal:
    """Parse a monetary value, treating missing or malformed input as 0."""
    if value is None or value == "":
        return ZERO
    try:
        return parse_amount(value)
    except DataShapeError as e:
        logger.warning("data_shape_recovered", field=field, error=str(e), default="0")
        return ZERO


def coerce_optional_amount(value, field: str) -> Optional[Decimal]:
    """Like coerce_amount, but missing or malformed input stays unset."""
    if value is None or value == "":
        return None
    try:
        return parse_amount(value)
    except DataShapeError as e:
        logger.warning("data_shape_recovered", field=field, error=str(e), default=None)
        return None


def coerce_date(value, field: str) -> Optional[date]:
    """Parse ISO dates, datetimes and store timestamps; anything else is unset."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    logger.warning("data_shape_recovered", field=field, error=f"Unparsable date: {value!r}", default=None)
    return None


def coerce_optional_text(value, field: str) -> Optional[str]:
    """Non-empty strings pass through; anything else is unset."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value.strip() or None
    logger.warning("data_shape_recovered", field=field, error=f"Not text: {value!r}", default=None)
    return None


def coerce_choice(enum_cls: type[E], value, default: E) -> E:
    """Map a raw value onto an enum member (case-insensitive), else the default."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted:
                return member
    return default


def coerce_flag(value, default: bool = True) -> bool:
    """Interpret booleans stored as bools, numbers or strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1", "active"):
            return True
        if lowered in ("false", "no", "0", "paused", "inactive"):
            return False
    return default


__all__ = [
    "ZERO",
    "coerce_amount",
    "coerce_choice",
    "coerce_date",
    "coerce_flag",
    "coerce_optional_amount",
    "coerce_optional_text",
    "parse_amount",
]
