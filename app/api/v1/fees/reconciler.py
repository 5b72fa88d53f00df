"""Fee status reconciliation: status is always derived from the ledger, never set by callers."""

from app.core.enums import FeeStatus
from app.core.money import Money


def reconcile(total_amount: Money, paid_amount: Money, has_refund: bool) -> FeeStatus:
    """
    PAID      paid >= total
    REFUNDED  paid <= 0 and at least one refund entry exists
    PARTIAL   0 < paid < total
    DUE       anything else
    """
    if paid_amount >= total_amount:
        return FeeStatus.PAID
    if not paid_amount.is_positive():
        return FeeStatus.REFUNDED if has_refund else FeeStatus.DUE
    return FeeStatus.PARTIAL
