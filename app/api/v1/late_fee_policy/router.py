"""Late fee policy router: read and update the caller's school policy."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import LateFeePolicyResponse, LateFeePolicyUpdate
from . import service

router = APIRouter(prefix="/api/v1/late-fee-policy", tags=["late-fee-policy"])


@router.get(
    "",
    response_model=LateFeePolicyResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_late_fee_policy(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LateFeePolicyResponse:
    return await service.get_late_fee_policy(db, current_user.school_id)


@router.put(
    "",
    response_model=LateFeePolicyResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_late_fee_policy(
    payload: LateFeePolicyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LateFeePolicyResponse:
    try:
        return await service.update_late_fee_policy(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
