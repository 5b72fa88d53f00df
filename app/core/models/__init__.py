from app.core.models.fee_record import FeeRecord
from app.core.models.fee_installment import FeeInstallment
from app.core.models.payment_ledger_entry import PaymentLedgerEntry
from app.core.models.late_fee_policy import LateFeePolicy
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "FeeRecord",
    "FeeInstallment",
    "PaymentLedgerEntry",
    "LateFeePolicy",
    "FeeAuditLog",
]
