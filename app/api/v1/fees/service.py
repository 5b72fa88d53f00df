"""Fees service: fee records, payment ledger, refunds, installments, late fee preview. Financial logic with audit."""

import logging
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.late_fee_policy.service import resolve_late_fee_terms
from app.core.config import settings
from app.core.enums import FeeAuditAction, FeeStatus, PaymentMethod
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import FeeAuditLog, FeeInstallment, FeeRecord, PaymentLedgerEntry
from app.core.money import Money
from app.db.types import MAX_STORABLE_AMOUNT

from .installments import InstallmentLine, validate_installment_plan
from .late_fee import compute_late_fee
from .receipts import generate_receipt_number, generate_refund_number
from .reconciler import reconcile
from .schemas import (
    FeeCreate,
    FeeResponse,
    FeeUpdate,
    InstallmentItem,
    InstallmentResponse,
    LateFeeResponse,
    LedgerEntryResponse,
    LedgerWriteResponse,
    PaymentCreate,
    RefundCreate,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FEE_NOT_FOUND = "Fee not found"

UNIQUE_VIOLATION_SQLSTATE = "23505"


# --- Audit helper ---
async def _log_fee_audit(
    db: AsyncSession,
    school_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: FeeAuditAction,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    log = FeeAuditLog(
        school_id=school_id,
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type.value,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)


# --- Transaction helper ---
def _is_unique_violation(exc: IntegrityError) -> bool:
    """Sequence or receipt number collision; CHECK and FK failures never succeed on retry."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE constraint failed" in str(orig)


async def _run_ledger_write(db: AsyncSession, fee_id: UUID, operation: Callable[[], Awaitable[T]]) -> T:
    """
    Run one fee write as a single transaction and commit it.
    Lost races (version check, or a unique collision on ledger sequence or receipt number)
    roll back and re-run the whole read-modify-write; anything else rolls back and propagates.
    """
    attempts = settings.ledger_write_retries
    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            await db.commit()
            return result
        except (StaleDataError, IntegrityError) as exc:
            await db.rollback()
            if isinstance(exc, IntegrityError) and not _is_unique_violation(exc):
                raise
            logger.warning(
                "Write conflict on fee %s (attempt %d/%d): %s",
                fee_id, attempt, attempts, exc.__class__.__name__,
            )
        except Exception:
            await db.rollback()
            raise
    logger.error("Giving up on fee %s after %d conflicting attempts", fee_id, attempts)
    raise ConflictError("Fee was modified concurrently, please retry")


# --- Response builders ---
def _installment_to_response(inst: FeeInstallment) -> InstallmentResponse:
    return InstallmentResponse(
        sequence=inst.sequence,
        due_date=inst.due_date,
        amount=inst.amount.to_decimal(),
    )


def _fee_to_response(fee: FeeRecord) -> FeeResponse:
    return FeeResponse(
        id=fee.id,
        school_id=fee.school_id,
        student_id=fee.student_id,
        fee_type=fee.fee_type,
        total_amount=fee.total_amount.to_decimal(),
        discount=fee.discount.to_decimal(),
        paid_amount=fee.paid_amount.to_decimal(),
        balance=(fee.total_amount - fee.paid_amount).to_decimal(),
        due_date=fee.due_date,
        academic_year=fee.academic_year,
        status=fee.status,
        installments=[_installment_to_response(i) for i in fee.installments],
        created_at=fee.created_at,
        updated_at=fee.updated_at,
    )


def _entry_to_response(entry: PaymentLedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=entry.id,
        fee_id=entry.fee_id,
        sequence=entry.sequence,
        amount=entry.amount.to_decimal(),
        method=entry.method,
        payment_date=entry.payment_date,
        receipt_number=entry.receipt_number,
        metadata=entry.entry_metadata,
        recorded_by=entry.recorded_by,
        created_at=entry.created_at,
    )


# --- Loaders ---
async def _get_scoped_fee(
    db: AsyncSession,
    fee_id: UUID,
    school_id: UUID,
    for_update: bool = False,
) -> FeeRecord:
    """Fee in the caller's school. A fee of another school is reported exactly like a missing one."""
    stmt = (
        select(FeeRecord)
        .where(FeeRecord.id == fee_id, FeeRecord.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    fee = (await db.execute(stmt)).scalar_one_or_none()
    if not fee:
        raise NotFoundError(FEE_NOT_FOUND)
    return fee


async def _load_ledger(db: AsyncSession, fee_id: UUID) -> Sequence[PaymentLedgerEntry]:
    result = await db.execute(
        select(PaymentLedgerEntry)
        .where(PaymentLedgerEntry.fee_id == fee_id)
        .order_by(PaymentLedgerEntry.sequence)
    )
    return result.scalars().all()


def _ledger_balance(entries: Sequence[PaymentLedgerEntry]) -> Money:
    return sum((e.amount for e in entries), Money.zero())


def _build_plan(items: Sequence[InstallmentItem], total_amount: Money) -> List[InstallmentLine]:
    return validate_installment_plan(
        (InstallmentLine(due_date=i.due_date, amount=Money(i.amount)) for i in items),
        total_amount,
    )


def _plan_to_rows(plan: Sequence[InstallmentLine]) -> List[FeeInstallment]:
    return [
        FeeInstallment(sequence=idx, due_date=line.due_date, amount=line.amount)
        for idx, line in enumerate(plan, start=1)
    ]


def _plan_snapshot(installments: Sequence[Union[FeeInstallment, InstallmentLine]]) -> List[dict]:
    return [{"due_date": i.due_date.isoformat(), "amount": str(i.amount)} for i in installments]


# --- Fee Record ---
async def create_fee(
    db: AsyncSession,
    school_id: UUID,
    payload: FeeCreate,
    changed_by: Optional[UUID] = None,
) -> FeeResponse:
    total = Money(payload.total_amount)
    discount = Money(payload.discount)
    if not total.is_positive():
        raise ValidationError("Total amount must be greater than 0")
    if discount.is_negative():
        raise ValidationError("Discount cannot be negative")
    if discount > total:
        raise ValidationError("Discount cannot exceed total amount")
    fee_type = payload.fee_type.strip()
    academic_year = payload.academic_year.strip()
    if not fee_type or not academic_year:
        raise ValidationError("Fee type and academic year are required")

    plan: List[InstallmentLine] = []
    if payload.installments is not None:
        plan = _build_plan(payload.installments, total)

    fee = FeeRecord(
        school_id=school_id,
        student_id=payload.student_id,
        fee_type=fee_type,
        total_amount=total,
        discount=discount,
        paid_amount=Money.zero(),
        due_date=payload.due_date,
        academic_year=academic_year,
        status=FeeStatus.DUE.value,
        installments=_plan_to_rows(plan),
    )
    try:
        db.add(fee)
        await db.flush()
        await _log_fee_audit(
            db, school_id, "fee_records", fee.id,
            FeeAuditAction.CREATE,
            None,
            {
                "student_id": str(fee.student_id),
                "fee_type": fee.fee_type,
                "total_amount": str(total),
                "discount": str(discount),
                "due_date": fee.due_date.isoformat(),
                "academic_year": fee.academic_year,
                "installments": _plan_snapshot(plan),
            },
            changed_by,
        )
        response = _fee_to_response(fee)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Created fee %s for student %s (%s %s)", fee.id, fee.student_id, fee.fee_type, total)
    return response


async def get_fee(db: AsyncSession, school_id: UUID, fee_id: UUID) -> FeeResponse:
    fee = await _get_scoped_fee(db, fee_id, school_id)
    return _fee_to_response(fee)


async def list_fees(
    db: AsyncSession,
    school_id: UUID,
    student_id: Optional[UUID] = None,
    status_filter: Optional[FeeStatus] = None,
    academic_year: Optional[str] = None,
) -> List[FeeResponse]:
    stmt = select(FeeRecord).where(FeeRecord.school_id == school_id)
    if student_id is not None:
        stmt = stmt.where(FeeRecord.student_id == student_id)
    if status_filter is not None:
        stmt = stmt.where(FeeRecord.status == FeeStatus(status_filter).value)
    if academic_year:
        stmt = stmt.where(FeeRecord.academic_year == academic_year.strip())
    stmt = stmt.order_by(FeeRecord.due_date, FeeRecord.created_at).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return [_fee_to_response(f) for f in result.scalars().all()]


async def update_fee(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    payload: FeeUpdate,
    changed_by: Optional[UUID] = None,
) -> FeeResponse:
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None:
            raise ValidationError(f"{field} cannot be null")
        if isinstance(value, str) and not value.strip():
            raise ValidationError(f"{field} cannot be blank")

    async def _apply() -> FeeResponse:
        fee = await _get_scoped_fee(db, fee_id, school_id, for_update=True)
        old = {}
        new = {}
        for field, value in changes.items():
            if isinstance(value, str):
                value = value.strip()
            current = getattr(fee, field)
            if current == value:
                continue
            old[field] = current.isoformat() if isinstance(current, date) else current
            new[field] = value.isoformat() if isinstance(value, date) else value
            setattr(fee, field, value)
        if new:
            fee.updated_at = datetime.utcnow()
            await _log_fee_audit(
                db, school_id, "fee_records", fee.id,
                FeeAuditAction.UPDATE, old, new, changed_by,
            )
            await db.flush()
        return _fee_to_response(fee)

    return await _run_ledger_write(db, fee_id, _apply)


async def delete_fee(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    changed_by: Optional[UUID] = None,
) -> None:
    async def _apply() -> None:
        fee = await _get_scoped_fee(db, fee_id, school_id, for_update=True)
        entries = await _load_ledger(db, fee.id)
        if fee.paid_amount.is_positive() or entries:
            raise ConflictError("Cannot delete a fee with recorded payments")
        await _log_fee_audit(
            db, school_id, "fee_records", fee.id,
            FeeAuditAction.DELETE,
            {
                "student_id": str(fee.student_id),
                "fee_type": fee.fee_type,
                "total_amount": str(fee.total_amount),
                "status": fee.status,
            },
            None,
            changed_by,
        )
        await db.delete(fee)
        await db.flush()

    await _run_ledger_write(db, fee_id, _apply)
    logger.info("Deleted fee %s", fee_id)


# --- Payment Ledger ---
def _reconcile_fee(
    fee: FeeRecord,
    prior_entries: Sequence[PaymentLedgerEntry],
    new_entry: PaymentLedgerEntry,
) -> Tuple[Money, FeeStatus]:
    paid = _ledger_balance(prior_entries) + new_entry.amount
    has_refund = new_entry.amount.is_negative() or any(e.amount.is_negative() for e in prior_entries)
    new_status = reconcile(fee.total_amount, paid, has_refund)
    fee.paid_amount = paid
    fee.status = new_status.value
    fee.updated_at = datetime.utcnow()
    return paid, new_status


def _check_stored_balance(fee: FeeRecord, ledger_paid: Money) -> None:
    if fee.paid_amount != ledger_paid:
        # Ledger wins; the write below overwrites the drifted value.
        logger.warning(
            "Fee %s stored paid_amount %s disagrees with ledger sum %s",
            fee.id, fee.paid_amount, ledger_paid,
        )


async def record_payment(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    payload: PaymentCreate,
    recorded_by: Optional[UUID] = None,
) -> LedgerWriteResponse:
    amount = Money(payload.amount)
    if not amount.is_positive():
        raise ValidationError("Payment amount must be greater than 0")
    method = PaymentMethod(payload.method)
    if method == PaymentMethod.REFUND:
        raise ValidationError("Use the refund operation to record refunds")
    payment_date = payload.payment_date or datetime.now(timezone.utc)
    metadata = dict(payload.metadata or {})
    reference = (payload.transaction_reference or "").strip()
    if reference:
        metadata["transaction_reference"] = reference

    async def _apply() -> LedgerWriteResponse:
        fee = await _get_scoped_fee(db, fee_id, school_id, for_update=True)
        entries = await _load_ledger(db, fee.id)
        current_paid = _ledger_balance(entries)
        _check_stored_balance(fee, current_paid)
        if current_paid + amount > MAX_STORABLE_AMOUNT:
            raise ValidationError(
                f"Payment would raise paid amount above {MAX_STORABLE_AMOUNT} (paid {current_paid}, payment {amount})"
            )
        old_status, old_paid = fee.status, fee.paid_amount

        entry = PaymentLedgerEntry(
            school_id=school_id,
            fee_id=fee.id,
            sequence=len(entries) + 1,
            amount=amount,
            method=method.value,
            payment_date=payment_date,
            receipt_number=generate_receipt_number(),
            entry_metadata=metadata or None,
            recorded_by=recorded_by,
        )
        db.add(entry)
        paid, new_status = _reconcile_fee(fee, entries, entry)
        await db.flush()
        await _log_fee_audit(
            db, school_id, "payment_ledger_entries", entry.id,
            FeeAuditAction.PAYMENT,
            {"paid_amount": str(old_paid), "status": old_status},
            {
                "fee_id": str(fee.id),
                "amount": str(amount),
                "method": entry.method,
                "receipt_number": entry.receipt_number,
                "paid_amount": str(paid),
                "status": new_status.value,
            },
            recorded_by,
        )
        await db.flush()
        return LedgerWriteResponse(entry=_entry_to_response(entry), fee=_fee_to_response(fee))

    result = await _run_ledger_write(db, fee_id, _apply)
    logger.info(
        "Recorded payment %s of %s on fee %s (paid %s, status %s)",
        result.entry.receipt_number, amount, fee_id, result.fee.paid_amount, result.fee.status.value,
    )
    return result


async def record_refund(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    payload: RefundCreate,
    recorded_by: Optional[UUID] = None,
) -> LedgerWriteResponse:
    amount = Money(payload.amount)
    if not amount.is_positive():
        raise ValidationError("Refund amount must be greater than 0")
    reason = payload.reason.strip()
    if not reason:
        raise ValidationError("Refund reason is required")

    async def _apply() -> LedgerWriteResponse:
        fee = await _get_scoped_fee(db, fee_id, school_id, for_update=True)
        entries = await _load_ledger(db, fee.id)
        current_paid = _ledger_balance(entries)
        _check_stored_balance(fee, current_paid)
        if amount > current_paid:
            raise ValidationError(
                f"Refund exceeds paid amount (refund {amount}, paid {current_paid})"
            )
        old_status, old_paid = fee.status, fee.paid_amount

        entry = PaymentLedgerEntry(
            school_id=school_id,
            fee_id=fee.id,
            sequence=len(entries) + 1,
            amount=amount.negate(),
            method=PaymentMethod.REFUND.value,
            payment_date=datetime.now(timezone.utc),
            receipt_number=generate_refund_number(),
            entry_metadata={"reason": reason},
            recorded_by=recorded_by,
        )
        db.add(entry)
        paid, new_status = _reconcile_fee(fee, entries, entry)
        await db.flush()
        await _log_fee_audit(
            db, school_id, "payment_ledger_entries", entry.id,
            FeeAuditAction.REFUND,
            {"paid_amount": str(old_paid), "status": old_status},
            {
                "fee_id": str(fee.id),
                "amount": str(entry.amount),
                "reason": reason,
                "receipt_number": entry.receipt_number,
                "paid_amount": str(paid),
                "status": new_status.value,
            },
            recorded_by,
        )
        await db.flush()
        return LedgerWriteResponse(entry=_entry_to_response(entry), fee=_fee_to_response(fee))

    result = await _run_ledger_write(db, fee_id, _apply)
    logger.info(
        "Recorded refund %s of %s on fee %s (paid %s, status %s)",
        result.entry.receipt_number, amount, fee_id, result.fee.paid_amount, result.fee.status.value,
    )
    return result


async def list_payments(db: AsyncSession, school_id: UUID, fee_id: UUID) -> List[LedgerEntryResponse]:
    fee = await _get_scoped_fee(db, fee_id, school_id)
    return [_entry_to_response(e) for e in await _load_ledger(db, fee.id)]


async def get_student_payment_history(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    academic_year: Optional[str] = None,
) -> List[LedgerEntryResponse]:
    stmt = (
        select(PaymentLedgerEntry)
        .join(FeeRecord, PaymentLedgerEntry.fee_id == FeeRecord.id)
        .where(
            PaymentLedgerEntry.school_id == school_id,
            FeeRecord.school_id == school_id,
            FeeRecord.student_id == student_id,
        )
    )
    if academic_year:
        stmt = stmt.where(FeeRecord.academic_year == academic_year.strip())
    stmt = stmt.order_by(PaymentLedgerEntry.payment_date.desc(), PaymentLedgerEntry.sequence.desc())
    result = await db.execute(stmt)
    return [_entry_to_response(e) for e in result.scalars().all()]


# --- Installments ---
async def set_installments(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    items: Sequence[InstallmentItem],
    changed_by: Optional[UUID] = None,
) -> FeeResponse:
    async def _apply() -> FeeResponse:
        fee = await _get_scoped_fee(db, fee_id, school_id, for_update=True)
        plan = _build_plan(items, fee.total_amount)
        old_plan = _plan_snapshot(fee.installments)
        fee.installments = _plan_to_rows(plan)
        fee.updated_at = datetime.utcnow()
        await _log_fee_audit(
            db, school_id, "fee_records", fee.id,
            FeeAuditAction.INSTALLMENTS,
            {"installments": old_plan},
            {"installments": _plan_snapshot(plan)},
            changed_by,
        )
        await db.flush()
        return _fee_to_response(fee)

    result = await _run_ledger_write(db, fee_id, _apply)
    logger.info("Set %d installments on fee %s", len(result.installments), fee_id)
    return result


# --- Late fee ---
async def compute_fee_late_fee(
    db: AsyncSession,
    school_id: UUID,
    fee_id: UUID,
    evaluation_date: Optional[datetime] = None,
) -> LateFeeResponse:
    """Advisory preview only; nothing is posted to the fee or the ledger."""
    fee = await _get_scoped_fee(db, fee_id, school_id)
    terms = await resolve_late_fee_terms(db, school_id)
    when = evaluation_date or datetime.now(timezone.utc)
    result = compute_late_fee(fee.total_amount, fee.paid_amount, fee.due_date, terms, when)
    return LateFeeResponse(
        fee_id=fee.id,
        evaluation_date=when,
        days_late=result.days_late,
        late_fee_amount=result.late_fee_amount.to_decimal(),
        total_due=result.total_due.to_decimal(),
    )
