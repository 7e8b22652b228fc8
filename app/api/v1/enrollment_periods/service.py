"""
School years and enrollment periods. Only one period may be active at a time;
activating a period closes every other active period.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentPeriodStatus
from app.core.exceptions import Conflict, NotFound, ValidationFailed
from app.core.models import EnrollmentPeriod, SchoolYear

from app.api.v1.enrollments import audit_service

from .schemas import (
    EnrollmentPeriodCreate,
    EnrollmentPeriodResponse,
    SchoolYearCreate,
    SchoolYearResponse,
)

logger = logging.getLogger(__name__)


def period_to_response(p: EnrollmentPeriod, today: Optional[date] = None) -> EnrollmentPeriodResponse:
    today = today or date.today()
    resp = EnrollmentPeriodResponse.model_validate(p)
    resp.is_open = p.is_open_on(today)
    if p.status == EnrollmentPeriodStatus.active.value:
        resp.days_remaining = max(0, (p.regular_registration_deadline - today).days)
    return resp


# ----- School years -----

async def create_school_year(db: AsyncSession, payload: SchoolYearCreate) -> SchoolYearResponse:
    if payload.end_date <= payload.start_date:
        raise ValidationFailed("School year end date must be after start date")
    sy = SchoolYear(name=payload.name.strip(), start_date=payload.start_date, end_date=payload.end_date)
    db.add(sy)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(f"School year {payload.name!r} already exists")
    await db.refresh(sy)
    return SchoolYearResponse.model_validate(sy)


async def list_school_years(db: AsyncSession) -> List[SchoolYearResponse]:
    result = await db.execute(select(SchoolYear).order_by(SchoolYear.start_date.desc()))
    return [SchoolYearResponse.model_validate(s) for s in result.scalars().all()]


# ----- Enrollment periods -----

async def get_period(db: AsyncSession, period_id: UUID, for_update: bool = False) -> Optional[EnrollmentPeriod]:
    stmt = select(EnrollmentPeriod).where(EnrollmentPeriod.id == period_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_active_period(db: AsyncSession) -> Optional[EnrollmentPeriod]:
    """The single active period (latest start date wins if data is inconsistent)."""
    result = await db.execute(
        select(EnrollmentPeriod)
        .where(EnrollmentPeriod.status == EnrollmentPeriodStatus.active.value)
        .order_by(EnrollmentPeriod.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_open_period(db: AsyncSession, today: Optional[date] = None) -> Optional[EnrollmentPeriod]:
    """Active period whose window contains today, or None when enrollment is closed."""
    period = await get_active_period(db)
    if period is None or not period.is_open_on(today or date.today()):
        return None
    return period


async def list_periods(
    db: AsyncSession,
    school_year_id: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[EnrollmentPeriodResponse]:
    q = select(EnrollmentPeriod)
    if school_year_id is not None:
        q = q.where(EnrollmentPeriod.school_year_id == school_year_id)
    q = q.order_by(EnrollmentPeriod.start_date.desc())
    result = await db.execute(q)
    return [period_to_response(p, today) for p in result.scalars().all()]


async def create_period(db: AsyncSession, payload: EnrollmentPeriodCreate) -> EnrollmentPeriodResponse:
    sy = await db.get(SchoolYear, payload.school_year_id)
    if not sy:
        raise NotFound("School year not found")
    if payload.end_date <= payload.start_date:
        raise ValidationFailed("End date must be after start date.")
    if payload.regular_registration_deadline < payload.start_date:
        raise ValidationFailed("Registration deadline must be within period dates.")
    period = EnrollmentPeriod(
        school_year_id=payload.school_year_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        early_registration_deadline=payload.early_registration_deadline,
        regular_registration_deadline=payload.regular_registration_deadline,
        late_registration_deadline=payload.late_registration_deadline,
        description=payload.description,
        allow_new_students=payload.allow_new_students,
        allow_returning_students=payload.allow_returning_students,
        status=EnrollmentPeriodStatus.upcoming.value,
    )
    db.add(period)
    await db.commit()
    await db.refresh(period)
    logger.info("Enrollment period %s created for school year %s", period.id, sy.name)
    return period_to_response(period)


async def _close_other_active_periods(db: AsyncSession, keep_id: UUID) -> None:
    await db.execute(
        update(EnrollmentPeriod)
        .where(
            EnrollmentPeriod.status == EnrollmentPeriodStatus.active.value,
            EnrollmentPeriod.id != keep_id,
        )
        .values(status=EnrollmentPeriodStatus.closed.value)
    )


async def activate_period(
    db: AsyncSession,
    period_id: UUID,
    performed_by: Optional[UUID] = None,
) -> EnrollmentPeriodResponse:
    period = await get_period(db, period_id, for_update=True)
    if not period:
        raise NotFound("Enrollment period not found")
    if period.status != EnrollmentPeriodStatus.active.value:
        from_status = period.status
        try:
            await _close_other_active_periods(db, period.id)
            period.status = EnrollmentPeriodStatus.active.value
            await audit_service.log_audit(
                db, "enrollment_period", period.id, "period_activated",
                from_status=from_status, to_status=period.status, performed_by=performed_by,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Enrollment period %s activated", period.id)
    await db.refresh(period)
    return period_to_response(period)


async def close_period(
    db: AsyncSession,
    period_id: UUID,
    performed_by: Optional[UUID] = None,
) -> EnrollmentPeriodResponse:
    period = await get_period(db, period_id, for_update=True)
    if not period:
        raise NotFound("Enrollment period not found")
    if period.status != EnrollmentPeriodStatus.closed.value:
        from_status = period.status
        period.status = EnrollmentPeriodStatus.closed.value
        await audit_service.log_audit(
            db, "enrollment_period", period.id, "period_closed",
            from_status=from_status, to_status=period.status, performed_by=performed_by,
        )
        await db.commit()
        logger.info("Enrollment period %s closed", period.id)
    await db.refresh(period)
    return period_to_response(period)


async def sync_period_statuses(
    db: AsyncSession,
    today: Optional[date] = None,
    dry_run: bool = False,
) -> Tuple[int, int]:
    """
    Date-driven status sync: active periods past their end date become closed, and the
    upcoming period that started most recently becomes active (closing the previously active
    one). Other upcoming periods already inside their window are closed as superseded.
    Returns (activated, closed).
    """
    today = today or date.today()
    starting = (
        await db.execute(
            select(EnrollmentPeriod)
            .where(
                EnrollmentPeriod.status == EnrollmentPeriodStatus.upcoming.value,
                EnrollmentPeriod.start_date <= today,
                EnrollmentPeriod.end_date >= today,
            )
            .order_by(EnrollmentPeriod.start_date, EnrollmentPeriod.created_at)
        )
    ).scalars().all()
    to_activate = starting[-1:]
    superseded = starting[:-1]
    to_close = (
        await db.execute(
            select(EnrollmentPeriod).where(
                EnrollmentPeriod.status == EnrollmentPeriodStatus.active.value,
                EnrollmentPeriod.end_date < today,
            )
        )
    ).scalars().all()
    activated, closed = len(to_activate), len(to_close) + len(superseded)
    if dry_run:
        return activated, closed

    try:
        for period in to_close:
            period.status = EnrollmentPeriodStatus.closed.value
            await audit_service.log_audit(
                db, "enrollment_period", period.id, "period_closed",
                from_status=EnrollmentPeriodStatus.active.value, to_status=period.status,
                details={"automated": True},
            )
        for period in superseded:
            period.status = EnrollmentPeriodStatus.closed.value
            await audit_service.log_audit(
                db, "enrollment_period", period.id, "period_closed",
                from_status=EnrollmentPeriodStatus.upcoming.value, to_status=period.status,
                details={"automated": True, "superseded_by": str(to_activate[0].id)},
            )
        await db.flush()
        for period in to_activate:
            await _close_other_active_periods(db, period.id)
            period.status = EnrollmentPeriodStatus.active.value
            await audit_service.log_audit(
                db, "enrollment_period", period.id, "period_activated",
                from_status=EnrollmentPeriodStatus.upcoming.value, to_status=period.status,
                details={"automated": True},
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Enrollment period sync: activated=%d closed=%d", activated, closed)
    return activated, closed
