"""Enrollment periods (activation, closing, date-driven sync) and grade level fee schedules."""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.api.v1.enrollment_periods import service as period_service
from app.api.v1.enrollment_periods.schemas import EnrollmentPeriodCreate
from app.api.v1.grade_level_fees import service as fee_service
from app.api.v1.grade_level_fees.schemas import GradeLevelFeeCreate, GradeLevelFeeUpdate
from app.core.enums import EnrollmentPeriodStatus, GradeLevel
from app.core.exceptions import Conflict, NotFound
from app.core.models import AuditLog, EnrollmentPeriod


async def _status_of(db, period_id) -> str:
    return (await db.execute(select(EnrollmentPeriod.status).where(EnrollmentPeriod.id == period_id))).scalar_one()


async def test_create_period_starts_upcoming(db_session, school_year) -> None:
    today = date.today()
    payload = EnrollmentPeriodCreate(
        school_year_id=school_year.id,
        start_date=today,
        end_date=today + timedelta(days=60),
        regular_registration_deadline=today + timedelta(days=30),
    )
    period = await period_service.create_period(db_session, payload)
    assert period.status == EnrollmentPeriodStatus.upcoming
    assert period.is_open is False


def test_period_dates_validated() -> None:
    today = date.today()
    with pytest.raises(ValueError):
        EnrollmentPeriodCreate(
            school_year_id="00000000-0000-0000-0000-000000000001",
            start_date=today,
            end_date=today,
            regular_registration_deadline=today,
        )


async def test_activate_closes_other_active_period(db_session, make_period) -> None:
    current = await make_period()
    upcoming = await make_period(status=EnrollmentPeriodStatus.upcoming)

    result = await period_service.activate_period(db_session, upcoming.id)

    assert result.status == EnrollmentPeriodStatus.active
    assert result.is_open is True
    assert await _status_of(db_session, current.id) == EnrollmentPeriodStatus.closed.value
    assert (await period_service.get_active_period(db_session)).id == upcoming.id


async def test_close_period(db_session, open_period) -> None:
    result = await period_service.close_period(db_session, open_period.id)
    assert result.status == EnrollmentPeriodStatus.closed
    assert await period_service.get_open_period(db_session) is None
    log = (await db_session.execute(select(AuditLog).where(AuditLog.action == "period_closed"))).scalar_one()
    assert log.from_status == "active"


async def test_activate_unknown_period(db_session) -> None:
    with pytest.raises(NotFound):
        await period_service.activate_period(db_session, uuid4())


async def test_sync_period_statuses(db_session, make_period) -> None:
    today = date.today()
    expired = await make_period(start=today - timedelta(days=60), end=today - timedelta(days=1))
    starting = await make_period(
        status=EnrollmentPeriodStatus.upcoming, start=today, end=today + timedelta(days=30)
    )
    later = await make_period(
        status=EnrollmentPeriodStatus.upcoming, start=today + timedelta(days=40), end=today + timedelta(days=70)
    )

    assert await period_service.sync_period_statuses(db_session, today, dry_run=True) == (1, 1)
    assert await _status_of(db_session, expired.id) == "active"

    assert await period_service.sync_period_statuses(db_session, today) == (1, 1)
    assert await _status_of(db_session, expired.id) == "closed"
    assert await _status_of(db_session, starting.id) == "active"
    assert await _status_of(db_session, later.id) == "upcoming"

    assert await period_service.sync_period_statuses(db_session, today) == (0, 0)


async def test_sync_activates_only_latest_started_period(db_session, make_period) -> None:
    today = date.today()
    earlier = await make_period(
        status=EnrollmentPeriodStatus.upcoming, start=today - timedelta(days=5), end=today + timedelta(days=30)
    )
    latest = await make_period(
        status=EnrollmentPeriodStatus.upcoming, start=today, end=today + timedelta(days=30)
    )
    earlier_id, latest_id = earlier.id, latest.id

    assert await period_service.sync_period_statuses(db_session, today) == (1, 1)
    assert await _status_of(db_session, latest_id) == "active"
    assert await _status_of(db_session, earlier_id) == "closed"

    log = (
        await db_session.execute(
            select(AuditLog).where(AuditLog.action == "period_closed", AuditLog.entity_id == earlier_id)
        )
    ).scalar_one()
    assert log.from_status == "upcoming"
    assert log.details["superseded_by"] == str(latest_id)
    assert (await period_service.get_active_period(db_session)).id == latest_id


# ----- Grade level fees -----

async def test_one_active_fee_per_grade_and_period(db_session, open_period) -> None:
    payload = GradeLevelFeeCreate(
        grade_level=GradeLevel.GRADE_1,
        enrollment_period_id=open_period.id,
        tuition_fee_cents=2_000_000,
        miscellaneous_fee_cents=500_000,
    )
    fee = await fee_service.create_grade_level_fee(db_session, payload)
    assert fee.is_active is True
    with pytest.raises(Conflict):
        await fee_service.create_grade_level_fee(db_session, payload)

    await fee_service.deactivate_grade_level_fee(db_session, fee.id)
    replacement = await fee_service.create_grade_level_fee(db_session, payload)
    assert replacement.id != fee.id

    active = await fee_service.list_grade_level_fees(db_session, open_period.id)
    assert [f.id for f in active] == [replacement.id]
    everything = await fee_service.list_grade_level_fees(db_session, open_period.id, active_only=False)
    assert len(everything) == 2


async def test_update_fee_is_audited(db_session, grade_fees) -> None:
    fee = grade_fees[GradeLevel.GRADE_2]
    result = await fee_service.update_grade_level_fee(
        db_session, fee.id, GradeLevelFeeUpdate(laboratory_fee_cents=150_000)
    )
    assert result.laboratory_fee_cents == 150_000
    assert result.tuition_fee_cents == 2_200_000
    log = (await db_session.execute(select(AuditLog).where(AuditLog.action == "UPDATE"))).scalar_one()
    assert log.details["old"]["laboratory_fee_cents"] == 100_000
    assert log.details["new"]["laboratory_fee_cents"] == 150_000


async def test_fees_listed_in_grade_order(db_session, grade_fees, open_period) -> None:
    fees = await fee_service.list_grade_level_fees(db_session, open_period.id)
    assert [f.grade_level for f in fees] == [GradeLevel.GRADE_1, GradeLevel.GRADE_2, GradeLevel.GRADE_3]


async def test_fee_for_unknown_period(db_session) -> None:
    payload = GradeLevelFeeCreate(
        grade_level=GradeLevel.KINDER, enrollment_period_id="00000000-0000-0000-0000-000000000001"
    )
    with pytest.raises(NotFound):
        await fee_service.create_grade_level_fee(db_session, payload)
