"""Installment plan validation: a plan must partition the fee total into positive, dated amounts."""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List

from app.core.exceptions import ValidationError
from app.core.money import Money

# Allowed absolute difference between the plan sum and the fee total.
SUM_TOLERANCE = Money("0.01")


@dataclass(frozen=True)
class InstallmentLine:
    due_date: date
    amount: Money


def validate_installment_plan(lines: Iterable[InstallmentLine], total_amount: Money) -> List[InstallmentLine]:
    plan = list(lines)
    if not plan:
        raise ValidationError("Installment plan must contain at least one installment")
    for idx, line in enumerate(plan, start=1):
        if not line.amount.is_positive():
            raise ValidationError(f"Installment {idx} amount must be greater than 0")

    plan_sum = sum((line.amount for line in plan), Money.zero())
    if abs(plan_sum - total_amount) > SUM_TOLERANCE:
        raise ValidationError(
            f"Installment amounts sum to {plan_sum} but fee total is {total_amount}"
        )
    return plan
