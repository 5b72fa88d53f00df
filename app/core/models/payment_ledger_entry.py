"""Payment ledger entry: append-only payment/refund log. Rows are never updated or deleted."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.session import Base
from app.db.types import MoneyType


class PaymentLedgerEntry(Base):
    """Signed amount: positive for a payment, negative for a refund."""

    __tablename__ = "payment_ledger_entries"
    __table_args__ = (UniqueConstraint("fee_id", "sequence", name="uq_payment_ledger_fee_sequence"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    fee_id = Column(
        UUID(as_uuid=True),
        ForeignKey("fee_records.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # 1-based append position per fee; the unique constraint rejects a racing duplicate append.
    sequence = Column(Integer, nullable=False)
    amount = Column(MoneyType, nullable=False)
    method = Column(String(30), nullable=False)  # CASH, CARD, ONLINE, CHEQUE, BANK_TRANSFER, UPI, REFUND
    payment_date = Column(DateTime(timezone=True), nullable=False)
    receipt_number = Column(String(64), nullable=False, unique=True)
    # "metadata" is reserved on declarative classes.
    entry_metadata = Column("metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True)
    recorded_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
