"""Fee installment: one dated slice of a fee's installment plan."""

import uuid

from sqlalchemy import Column, Date, ForeignKey, Integer
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base
from app.db.types import MoneyType


class FeeInstallment(Base):
    """Plan rows are replaced wholesale; sequence keeps the caller's ordering."""

    __tablename__ = "fee_installments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    fee_id = Column(
        UUID(as_uuid=True),
        ForeignKey("fee_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(MoneyType, nullable=False)
