"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import FeeStatus, PaymentMethod


# --- Installments ---
class InstallmentItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    due_date: date
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class InstallmentPlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    installments: List[InstallmentItem] = Field(..., min_length=1)


class InstallmentResponse(BaseModel):
    sequence: int
    due_date: date
    amount: Decimal


# --- Fee Record ---
class FeeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    student_id: UUID
    fee_type: str = Field(..., min_length=1, max_length=50, description="tuition, transport, ...")
    total_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: date
    academic_year: str = Field(..., min_length=1, max_length=20)
    discount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    installments: Optional[List[InstallmentItem]] = None


class FeeUpdate(BaseModel):
    """Only non-financial fields. Amounts and status move through payments, refunds and installments."""

    model_config = ConfigDict(extra="forbid")

    due_date: Optional[date] = None
    fee_type: Optional[str] = Field(None, min_length=1, max_length=50)
    academic_year: Optional[str] = Field(None, min_length=1, max_length=20)


class FeeResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    fee_type: str
    total_amount: Decimal
    discount: Decimal
    paid_amount: Decimal
    balance: Decimal
    due_date: date
    academic_year: str
    status: FeeStatus
    installments: List[InstallmentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# --- Ledger ---
class PaymentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod = Field(..., description="CASH, CARD, ONLINE, CHEQUE, BANK_TRANSFER, UPI")
    payment_date: Optional[datetime] = None
    transaction_reference: Optional[str] = Field(None, max_length=100)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("method")
    @classmethod
    def reject_refund_method(cls, v: PaymentMethod) -> PaymentMethod:
        if v == PaymentMethod.REFUND:
            raise ValueError("REFUND is reserved for refund entries")
        return v


class RefundCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=500)


class LedgerEntryResponse(BaseModel):
    id: UUID
    fee_id: UUID
    sequence: int
    amount: Decimal
    method: str
    payment_date: datetime
    receipt_number: str
    metadata: Optional[Dict[str, Any]] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime


class LedgerWriteResponse(BaseModel):
    """A ledger write returns the new entry together with the reconciled fee."""

    entry: LedgerEntryResponse
    fee: FeeResponse


# --- Late fee ---
class LateFeeResponse(BaseModel):
    fee_id: UUID
    evaluation_date: datetime
    days_late: int
    late_fee_amount: Decimal
    total_due: Decimal
