"""Fee record: one billing obligation for a student. Financial fields change only through the ledger."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import FeeStatus
from app.db.session import Base
from app.db.types import MoneyType


class FeeRecord(Base):
    """
    Fee obligation owned by exactly one school and one student.
    paid_amount mirrors the signed sum of payment_ledger_entries; status is derived from it.
    version is bumped on every write so concurrent ledger updates cannot silently overwrite each other.
    """

    __tablename__ = "fee_records"
    __table_args__ = (
        CheckConstraint("total_amount > 0", name="chk_fee_record_total_positive"),
        CheckConstraint(
            "discount >= 0 AND discount <= total_amount",
            name="chk_fee_record_discount_range",
        ),
        CheckConstraint("paid_amount >= 0", name="chk_fee_record_paid_non_negative"),
        CheckConstraint(
            "status IN ('DUE','PARTIAL','PAID','REFUNDED')",
            name="chk_fee_record_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    fee_type = Column(String(50), nullable=False)
    total_amount = Column(MoneyType, nullable=False)
    discount = Column(MoneyType, nullable=False, default=0)
    paid_amount = Column(MoneyType, nullable=False, default=0)
    due_date = Column(Date, nullable=False)
    academic_year = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.DUE.value)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    installments = relationship(
        "FeeInstallment",
        order_by="FeeInstallment.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}
