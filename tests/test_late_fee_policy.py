"""Tests for the per-school late fee policy."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees import service as fee_service
from app.api.v1.late_fee_policy import service
from app.api.v1.late_fee_policy.schemas import LateFeePolicyUpdate
from app.core.exceptions import ValidationError
from app.core.models import FeeAuditLog, LateFeePolicy


async def test_defaults_when_nothing_saved(db_session: AsyncSession, school_id) -> None:
    policy = await service.get_late_fee_policy(db_session, school_id)
    assert policy.is_default is True
    assert policy.enabled is True
    assert policy.daily_rate == Decimal("0.01")
    assert policy.max_late_fee == Decimal("0.5")
    assert policy.grace_days == 0


async def test_partial_update_keeps_other_fields(db_session: AsyncSession, school_id) -> None:
    updated = await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(grace_days=5))
    assert updated.is_default is False
    assert updated.grace_days == 5
    assert updated.daily_rate == Decimal("0.01")

    again = await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(daily_rate=Decimal("0.02")))
    assert again.grace_days == 5
    assert again.daily_rate == Decimal("0.02")

    stored = await service.get_late_fee_policy(db_session, school_id)
    assert stored.grace_days == 5
    assert stored.daily_rate == Decimal("0.02")


async def test_cap_can_be_removed(db_session: AsyncSession, school_id) -> None:
    updated = await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(max_late_fee=None))
    assert updated.max_late_fee is None


async def test_null_daily_rate_rejected(db_session: AsyncSession, school_id) -> None:
    with pytest.raises(ValidationError):
        await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(daily_rate=None))


async def test_policy_is_per_school(db_session: AsyncSession, school_id, other_school_id) -> None:
    await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(enabled=False))
    other = await service.get_late_fee_policy(db_session, other_school_id)
    assert other.is_default is True
    assert other.enabled is True


async def test_policy_update_is_audited(db_session: AsyncSession, school_id) -> None:
    await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(grace_days=2))
    logs = (await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.action_type == "POLICY"))).scalars().all()
    assert len(logs) == 1
    assert logs[0].old_value["grace_days"] == 0
    assert logs[0].new_value["grace_days"] == 2


async def test_saved_policy_drives_late_fee(make_fee, db_session: AsyncSession, school_id) -> None:
    await service.update_late_fee_policy(
        db_session,
        school_id,
        LateFeePolicyUpdate(daily_rate=Decimal("0.02"), max_late_fee=Decimal("0.1"), grace_days=2),
    )
    fee = await make_fee(due_date=date(2026, 1, 1))
    when = datetime(2026, 1, 5, tzinfo=timezone.utc)
    result = await fee_service.compute_fee_late_fee(db_session, school_id, fee.id, evaluation_date=when)
    # 4 days overdue, 2 grace -> 2 days at 2% of 1000
    assert result.days_late == 2
    assert result.late_fee_amount == Decimal("40.00")

    capped = await fee_service.compute_fee_late_fee(
        db_session, school_id, fee.id, evaluation_date=datetime(2026, 2, 1, tzinfo=timezone.utc)
    )
    assert capped.late_fee_amount == Decimal("100.00")


async def test_disabled_policy_yields_zero(make_fee, db_session: AsyncSession, school_id) -> None:
    await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(enabled=False))
    fee = await make_fee(due_date=date(2026, 1, 1))
    result = await fee_service.compute_fee_late_fee(
        db_session, school_id, fee.id, evaluation_date=datetime(2026, 1, 20, tzinfo=timezone.utc)
    )
    assert result.late_fee_amount == Decimal("0.00")
    assert result.total_due == Decimal("1000.00")


async def test_first_update_racing_another_creator_applies_on_top(
    db_session: AsyncSession, school_id, monkeypatch
) -> None:
    original_lookup = service._get_policy_row
    lookups = []

    async def lookup_while_another_request_creates(db, sid):
        lookups.append(sid)
        if len(lookups) == 1:
            db.add(LateFeePolicy(school_id=sid, enabled=True, daily_rate=Decimal("0.05"), grace_days=1))
            await db.commit()
            return None
        return await original_lookup(db, sid)

    monkeypatch.setattr(service, "_get_policy_row", lookup_while_another_request_creates)

    updated = await service.update_late_fee_policy(db_session, school_id, LateFeePolicyUpdate(grace_days=4))
    assert len(lookups) == 2
    assert updated.grace_days == 4
    assert updated.daily_rate == Decimal("0.05")

    rows = (
        await db_session.execute(select(LateFeePolicy).where(LateFeePolicy.school_id == school_id))
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].grace_days == 4
