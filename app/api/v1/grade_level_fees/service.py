"""Grade level fee schedules: registrar-managed, read-only to the billing calculator."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import GradeLevel
from app.core.exceptions import Conflict, NotFound
from app.core.models import EnrollmentPeriod, GradeLevelFee

from app.api.v1.enrollments import audit_service, repository

from .schemas import GradeLevelFeeCreate, GradeLevelFeeResponse, GradeLevelFeeUpdate

logger = logging.getLogger(__name__)

_AMOUNT_FIELDS = (
    "tuition_fee_cents",
    "miscellaneous_fee_cents",
    "laboratory_fee_cents",
    "registration_fee_cents",
)


def _snapshot(fee: GradeLevelFee) -> dict:
    return {f: int(getattr(fee, f) or 0) for f in _AMOUNT_FIELDS}


async def create_grade_level_fee(
    db: AsyncSession,
    payload: GradeLevelFeeCreate,
    changed_by: Optional[UUID] = None,
) -> GradeLevelFeeResponse:
    period = await db.get(EnrollmentPeriod, payload.enrollment_period_id)
    if not period:
        raise NotFound("Enrollment period not found")
    existing = await repository.get_active_fee_schedule(db, payload.grade_level, payload.enrollment_period_id)
    if existing:
        raise Conflict(f"An active fee schedule for {payload.grade_level.value} already exists for this period")
    fee = GradeLevelFee(
        grade_level=payload.grade_level.value,
        enrollment_period_id=payload.enrollment_period_id,
        tuition_fee_cents=payload.tuition_fee_cents,
        miscellaneous_fee_cents=payload.miscellaneous_fee_cents,
        laboratory_fee_cents=payload.laboratory_fee_cents,
        registration_fee_cents=payload.registration_fee_cents,
        is_active=True,
    )
    try:
        db.add(fee)
        await db.flush()
        await audit_service.log_audit(
            db, "grade_level_fee", fee.id, "CREATE",
            performed_by=changed_by,
            details={"grade_level": fee.grade_level, **_snapshot(fee)},
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(f"An active fee schedule for {payload.grade_level.value} already exists for this period")
    await db.refresh(fee)
    logger.info("Fee schedule %s created for %s", fee.id, fee.grade_level)
    return GradeLevelFeeResponse.model_validate(fee)


async def update_grade_level_fee(
    db: AsyncSession,
    fee_id: UUID,
    payload: GradeLevelFeeUpdate,
    changed_by: Optional[UUID] = None,
) -> GradeLevelFeeResponse:
    """Edits never touch existing enrollments; they hold their own fee snapshot."""
    fee = await db.get(GradeLevelFee, fee_id)
    if not fee:
        raise NotFound("Grade level fee not found")
    old = _snapshot(fee)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(fee, field, value)
    await audit_service.log_audit(
        db, "grade_level_fee", fee.id, "UPDATE",
        performed_by=changed_by,
        details={"old": old, "new": _snapshot(fee)},
    )
    await db.commit()
    await db.refresh(fee)
    return GradeLevelFeeResponse.model_validate(fee)


async def deactivate_grade_level_fee(
    db: AsyncSession,
    fee_id: UUID,
    changed_by: Optional[UUID] = None,
) -> GradeLevelFeeResponse:
    fee = await db.get(GradeLevelFee, fee_id)
    if not fee:
        raise NotFound("Grade level fee not found")
    if fee.is_active:
        fee.is_active = False
        await audit_service.log_audit(db, "grade_level_fee", fee.id, "DEACTIVATE", performed_by=changed_by)
        await db.commit()
        await db.refresh(fee)
    return GradeLevelFeeResponse.model_validate(fee)


async def list_grade_level_fees(
    db: AsyncSession,
    enrollment_period_id: UUID,
    active_only: bool = True,
) -> List[GradeLevelFeeResponse]:
    stmt = select(GradeLevelFee).where(GradeLevelFee.enrollment_period_id == enrollment_period_id)
    if active_only:
        stmt = stmt.where(GradeLevelFee.is_active.is_(True))
    rows = (await db.execute(stmt)).scalars().all()
    order = {g.value: g.order for g in GradeLevel}
    rows = sorted(rows, key=lambda f: order.get(f.grade_level, len(order)))
    return [GradeLevelFeeResponse.model_validate(f) for f in rows]
