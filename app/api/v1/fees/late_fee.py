"""Late fee calculator. Pure: reads a fee and a policy, never writes anything."""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional, Union

from app.core.money import Money

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class LateFeeTerms:
    """Resolved policy values (stored row or configured defaults)."""

    enabled: bool
    daily_rate: Decimal
    max_late_fee: Optional[Decimal]
    grace_days: int


@dataclass(frozen=True)
class LateFeeResult:
    days_late: int
    late_fee_amount: Money
    total_due: Money


def _as_utc_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def days_overdue(due_date: date, evaluation_date: Union[date, datetime]) -> int:
    """Whole days past due, rounded up; partial days count as a full day."""
    delta = _as_utc_datetime(evaluation_date) - _as_utc_datetime(due_date)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def compute_late_fee(
    total_amount: Money,
    paid_amount: Money,
    due_date: date,
    terms: LateFeeTerms,
    evaluation_date: Union[date, datetime],
) -> LateFeeResult:
    days_late = max(0, days_overdue(due_date, evaluation_date) - terms.grace_days)

    late_fee = Money.zero()
    if terms.enabled and days_late > 0:
        late_fee = total_amount.multiply_by_fraction(terms.daily_rate * days_late)
        if terms.max_late_fee is not None:
            late_fee = late_fee.min(total_amount.multiply_by_fraction(terms.max_late_fee))

    return LateFeeResult(
        days_late=days_late,
        late_fee_amount=late_fee,
        total_due=total_amount - paid_amount + late_fee,
    )
