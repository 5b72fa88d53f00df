"""Fees router: fee records, payments, refunds, installments, late fee preview."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import FeeStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    FeeCreate,
    FeeResponse,
    FeeUpdate,
    InstallmentPlanRequest,
    LateFeeResponse,
    LedgerEntryResponse,
    LedgerWriteResponse,
    PaymentCreate,
    RefundCreate,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Record ---
@router.post(
    "",
    response_model=FeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee(
    payload: FeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeResponse:
    try:
        return await service.create_fee(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "",
    response_model=List[FeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fees(
    student_id: Optional[UUID] = Query(None),
    fee_status: Optional[FeeStatus] = Query(None, alias="status", description="DUE, PARTIAL, PAID, REFUNDED"),
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeResponse]:
    return await service.list_fees(
        db,
        current_user.school_id,
        student_id=student_id,
        status_filter=fee_status,
        academic_year=academic_year,
    )


@router.get(
    "/students/{student_id}/payments",
    response_model=List[LedgerEntryResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_payment_history(
    student_id: UUID,
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LedgerEntryResponse]:
    return await service.get_student_payment_history(
        db, current_user.school_id, student_id, academic_year=academic_year
    )


@router.get(
    "/{fee_id}",
    response_model=FeeResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeResponse:
    try:
        return await service.get_fee(db, current_user.school_id, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch(
    "/{fee_id}",
    response_model=FeeResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee(
    fee_id: UUID,
    payload: FeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeResponse:
    try:
        return await service.update_fee(
            db, current_user.school_id, fee_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete(
    "/{fee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_fee(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_fee(db, current_user.school_id, fee_id, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Payment Ledger ---
@router.post(
    "/{fee_id}/payments",
    response_model=LedgerWriteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    fee_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LedgerWriteResponse:
    try:
        return await service.record_payment(
            db, current_user.school_id, fee_id, payload, recorded_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "/{fee_id}/payments",
    response_model=List[LedgerEntryResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_payments(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LedgerEntryResponse]:
    try:
        return await service.list_payments(db, current_user.school_id, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{fee_id}/refunds",
    response_model=LedgerWriteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def record_refund(
    fee_id: UUID,
    payload: RefundCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LedgerWriteResponse:
    try:
        return await service.record_refund(
            db, current_user.school_id, fee_id, payload, recorded_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


# --- Installments ---
@router.put(
    "/{fee_id}/installments",
    response_model=FeeResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def set_installments(
    fee_id: UUID,
    payload: InstallmentPlanRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeResponse:
    try:
        return await service.set_installments(
            db, current_user.school_id, fee_id, payload.installments, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


# --- Late fee ---
@router.get(
    "/{fee_id}/late-fee",
    response_model=LateFeeResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def compute_late_fee(
    fee_id: UUID,
    payment_date: Optional[datetime] = Query(None, description="Evaluation date; defaults to now"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LateFeeResponse:
    try:
        return await service.compute_fee_late_fee(
            db, current_user.school_id, fee_id, evaluation_date=payment_date
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
