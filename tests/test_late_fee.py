"""Unit tests for the late fee calculator."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from app.api.v1.fees.late_fee import LateFeeTerms, compute_late_fee, days_overdue
from app.core.money import Money

DUE = date(2026, 1, 1)
TOTAL = Money("1000.00")


def _terms(**overrides) -> LateFeeTerms:
    values = dict(enabled=True, daily_rate=Decimal("0.01"), max_late_fee=Decimal("0.5"), grace_days=0)
    values.update(overrides)
    return LateFeeTerms(**values)


def test_ten_days_late_uncapped() -> None:
    result = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(), DUE + timedelta(days=10))
    assert result.days_late == 10
    assert result.late_fee_amount == Money("100.00")
    assert result.total_due == Money("1100.00")


def test_cap_applies() -> None:
    result = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(), DUE + timedelta(days=80))
    assert result.days_late == 80
    assert result.late_fee_amount == Money("500.00")


def test_no_cap_configured() -> None:
    result = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(max_late_fee=None), DUE + timedelta(days=80))
    assert result.late_fee_amount == Money("800.00")


def test_grace_days_are_subtracted() -> None:
    result = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(grace_days=3), DUE + timedelta(days=10))
    assert result.days_late == 7
    assert result.late_fee_amount == Money("70.00")

    within_grace = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(grace_days=3), DUE + timedelta(days=2))
    assert within_grace.days_late == 0
    assert within_grace.late_fee_amount == Money.zero()


def test_disabled_policy_charges_nothing() -> None:
    result = compute_late_fee(TOTAL, Money("200.00"), DUE, _terms(enabled=False), DUE + timedelta(days=10))
    assert result.days_late == 10
    assert result.late_fee_amount == Money.zero()
    assert result.total_due == Money("800.00")


def test_not_yet_due() -> None:
    result = compute_late_fee(TOTAL, Money.zero(), DUE, _terms(), DUE - timedelta(days=5))
    assert result.days_late == 0
    assert result.late_fee_amount == Money.zero()
    assert result.total_due == TOTAL


def test_partial_day_counts_as_full_day() -> None:
    evaluation = datetime(2026, 1, 3, 0, 30, tzinfo=timezone.utc)
    assert days_overdue(DUE, evaluation) == 3


def test_naive_datetime_treated_as_utc() -> None:
    assert days_overdue(DUE, datetime(2026, 1, 11)) == 10


def test_total_due_subtracts_paid_amount() -> None:
    result = compute_late_fee(TOTAL, Money("400.00"), DUE, _terms(), DUE + timedelta(days=10))
    assert result.total_due == Money("700.00")


def test_fractional_rate_is_exact() -> None:
    result = compute_late_fee(Money("333.33"), Money.zero(), DUE, _terms(daily_rate=Decimal("0.015"), max_late_fee=None), DUE + timedelta(days=7))
    # 333.33 * 0.105 = 34.99965 -> 35.00
    assert result.late_fee_amount == Money("35.00")


def test_idempotent() -> None:
    when = DUE + timedelta(days=12)
    assert compute_late_fee(TOTAL, Money.zero(), DUE, _terms(), when) == compute_late_fee(
        TOTAL, Money.zero(), DUE, _terms(), when
    )
