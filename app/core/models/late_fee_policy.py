"""Late fee policy: one optional row per school. Missing row means configured defaults apply."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class LateFeePolicy(Base):
    """Rates are fractions of the fee total: daily_rate per day late, max_late_fee as the cap (NULL = uncapped)."""

    __tablename__ = "late_fee_policies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(UUID(as_uuid=True), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)
    daily_rate = Column(Numeric(8, 6), nullable=False)
    max_late_fee = Column(Numeric(8, 6), nullable=True)
    grace_days = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
