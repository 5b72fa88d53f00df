"""Unit tests for fee status reconciliation."""

import pytest

from app.api.v1.fees.reconciler import reconcile
from app.core.enums import FeeStatus
from app.core.money import Money

TOTAL = Money("1000.00")


@pytest.mark.parametrize(
    "paid, has_refund, expected",
    [
        ("0", False, FeeStatus.DUE),
        ("0", True, FeeStatus.REFUNDED),
        ("0.01", False, FeeStatus.PARTIAL),
        ("400", True, FeeStatus.PARTIAL),
        ("999.99", False, FeeStatus.PARTIAL),
        ("1000", False, FeeStatus.PAID),
        ("1000", True, FeeStatus.PAID),
        ("1200", False, FeeStatus.PAID),
    ],
)
def test_status_table(paid: str, has_refund: bool, expected: FeeStatus) -> None:
    assert reconcile(TOTAL, Money(paid), has_refund) == expected


def test_reconcile_is_pure() -> None:
    paid = Money("250.00")
    first = reconcile(TOTAL, paid, False)
    second = reconcile(TOTAL, paid, False)
    assert first == second == FeeStatus.PARTIAL
    assert paid == Money("250.00")
