"""Late fee policy schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LateFeePolicyUpdate(BaseModel):
    """Partial update; omitted fields keep their current (or default) value. max_late_fee=null removes the cap."""

    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    daily_rate: Optional[Decimal] = Field(
        None, ge=0, le=1, max_digits=8, decimal_places=6, description="Fraction of total per day late, e.g. 0.01"
    )
    max_late_fee: Optional[Decimal] = Field(
        None, ge=0, le=10, max_digits=8, decimal_places=6, description="Cap as fraction of total, e.g. 0.5"
    )
    grace_days: Optional[int] = Field(None, ge=0)


class LateFeePolicyResponse(BaseModel):
    school_id: UUID
    enabled: bool
    daily_rate: Decimal
    max_late_fee: Optional[Decimal] = None
    grace_days: int
    is_default: bool
    updated_at: Optional[datetime] = None
