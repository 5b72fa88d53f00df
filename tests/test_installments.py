"""Unit tests for installment plan validation."""

from datetime import date

import pytest

from app.api.v1.fees.installments import InstallmentLine, validate_installment_plan
from app.core.exceptions import ValidationError
from app.core.money import Money

TOTAL = Money("1000.00")


def _line(amount: str, month: int = 1) -> InstallmentLine:
    return InstallmentLine(due_date=date(2026, month, 1), amount=Money(amount))


def test_exact_partition_accepted() -> None:
    plan = validate_installment_plan([_line("400", 1), _line("300", 2), _line("300", 3)], TOTAL)
    assert [p.amount for p in plan] == [Money("400"), Money("300"), Money("300")]


def test_within_one_cent_accepted() -> None:
    plan = validate_installment_plan([_line("333.33"), _line("333.33"), _line("333.33")], TOTAL)
    assert len(plan) == 3


def test_short_sum_rejected_with_both_amounts_in_message() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_installment_plan([_line("400"), _line("300")], TOTAL)
    assert "700.00" in exc.value.message
    assert "1000.00" in exc.value.message


def test_off_by_two_cents_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_installment_plan([_line("500.00"), _line("499.98")], TOTAL)


def test_empty_plan_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_installment_plan([], TOTAL)


def test_non_positive_amount_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_installment_plan([_line("1000.00"), _line("0")], TOTAL)
