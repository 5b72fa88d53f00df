"""Late fee policy service: per-school policy with configured defaults when none is saved."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.late_fee import LateFeeTerms
from app.core.config import settings
from app.core.enums import FeeAuditAction
from app.core.exceptions import ValidationError
from app.core.models import FeeAuditLog, LateFeePolicy

from .schemas import LateFeePolicyResponse, LateFeePolicyUpdate

logger = logging.getLogger(__name__)


def default_late_fee_terms() -> LateFeeTerms:
    return LateFeeTerms(
        enabled=settings.late_fee_default_enabled,
        daily_rate=settings.late_fee_default_daily_rate,
        max_late_fee=settings.late_fee_default_max,
        grace_days=settings.late_fee_default_grace_days,
    )


def _to_decimal(val) -> Optional[Decimal]:
    if val is None:
        return None
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _terms_from_row(policy: LateFeePolicy) -> LateFeeTerms:
    return LateFeeTerms(
        enabled=policy.enabled,
        daily_rate=_to_decimal(policy.daily_rate),
        max_late_fee=_to_decimal(policy.max_late_fee),
        grace_days=policy.grace_days,
    )


def _terms_snapshot(terms: LateFeeTerms) -> dict:
    return {
        "enabled": terms.enabled,
        "daily_rate": str(terms.daily_rate),
        "max_late_fee": None if terms.max_late_fee is None else str(terms.max_late_fee),
        "grace_days": terms.grace_days,
    }


async def _get_policy_row(db: AsyncSession, school_id: UUID) -> Optional[LateFeePolicy]:
    result = await db.execute(
        select(LateFeePolicy)
        .where(LateFeePolicy.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def resolve_late_fee_terms(db: AsyncSession, school_id: UUID) -> LateFeeTerms:
    policy = await _get_policy_row(db, school_id)
    return _terms_from_row(policy) if policy else default_late_fee_terms()


def _to_response(school_id: UUID, terms: LateFeeTerms, policy: Optional[LateFeePolicy]) -> LateFeePolicyResponse:
    return LateFeePolicyResponse(
        school_id=school_id,
        enabled=terms.enabled,
        daily_rate=terms.daily_rate,
        max_late_fee=terms.max_late_fee,
        grace_days=terms.grace_days,
        is_default=policy is None,
        updated_at=policy.updated_at if policy else None,
    )


async def get_late_fee_policy(db: AsyncSession, school_id: UUID) -> LateFeePolicyResponse:
    policy = await _get_policy_row(db, school_id)
    terms = _terms_from_row(policy) if policy else default_late_fee_terms()
    return _to_response(school_id, terms, policy)


async def _write_policy(
    db: AsyncSession,
    school_id: UUID,
    changes: dict,
    changed_by: Optional[UUID],
) -> Tuple[LateFeePolicy, LateFeeTerms, LateFeeTerms]:
    policy = await _get_policy_row(db, school_id)
    current = _terms_from_row(policy) if policy else default_late_fee_terms()
    merged = LateFeeTerms(
        enabled=changes.get("enabled", current.enabled),
        daily_rate=changes.get("daily_rate", current.daily_rate),
        max_late_fee=changes["max_late_fee"] if "max_late_fee" in changes else current.max_late_fee,
        grace_days=changes.get("grace_days", current.grace_days),
    )
    if policy is None:
        policy = LateFeePolicy(school_id=school_id)
        db.add(policy)
    policy.enabled = merged.enabled
    policy.daily_rate = merged.daily_rate
    policy.max_late_fee = merged.max_late_fee
    policy.grace_days = merged.grace_days
    policy.updated_at = datetime.utcnow()
    await db.flush()
    db.add(
        FeeAuditLog(
            school_id=school_id,
            reference_table="late_fee_policies",
            reference_id=policy.id,
            action_type=FeeAuditAction.POLICY.value,
            old_value=_terms_snapshot(current),
            new_value=_terms_snapshot(merged),
            changed_by=changed_by,
        )
    )
    return policy, current, merged


async def update_late_fee_policy(
    db: AsyncSession,
    school_id: UUID,
    payload: LateFeePolicyUpdate,
    changed_by: Optional[UUID] = None,
) -> LateFeePolicyResponse:
    changes = payload.model_dump(exclude_unset=True)
    for field in ("enabled", "daily_rate", "grace_days"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if changes.get("daily_rate") is not None and changes["daily_rate"] < 0:
        raise ValidationError("daily_rate cannot be negative")
    if changes.get("max_late_fee") is not None and changes["max_late_fee"] < 0:
        raise ValidationError("max_late_fee cannot be negative")
    if changes.get("grace_days") is not None and changes["grace_days"] < 0:
        raise ValidationError("grace_days cannot be negative")

    # Two first-time updates for a school can race on the unique school_id; the loser re-reads
    # the winner's row and applies its change on top.
    for attempt in (1, 2):
        try:
            policy, _, merged = await _write_policy(db, school_id, changes, changed_by)
            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            if attempt == 2:
                raise
            logger.warning("Late fee policy for school %s was created concurrently, re-reading", school_id)
        except Exception:
            await db.rollback()
            raise
    logger.info("Updated late fee policy for school %s: %s", school_id, _terms_snapshot(merged))
    return _to_response(school_id, merged, policy)
