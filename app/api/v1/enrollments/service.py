"""
Enrollment lifecycle: create, approve, reject, complete, withdraw.
pending -> enrolled | rejected; enrolled -> completed | withdrawn. Every mutation is one transaction.
Eligibility checks run before any write; the partial unique index on enrollments is the final guard.
"""

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus, GradeLevel, PaymentPlanKind, PaymentStatus, Quarter
from app.core.exceptions import (
    Conflict,
    DuplicateEnrollment,
    EnrollmentClosed,
    GradeLevelRegression,
    InvalidTransition,
    NewStudentsNotAccepted,
    NotFound,
    ReturningStudentsNotAccepted,
)
from app.core.models import Enrollment, Guardian
from app.core.schemas import FeeBreakdown, Page

from app.api.v1.billing import calculator
from app.api.v1.enrollment_periods import service as period_service

from . import audit_service, repository
from .schemas import EnrollmentCreate, EnrollmentFilters, EnrollmentResponse, EnrollmentStatistics

logger = logging.getLogger(__name__)

ENTITY = "enrollment"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def enrollment_to_response(e: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=e.id,
        reference_code=e.reference_code,
        student_id=e.student_id,
        guardian_id=e.guardian_id,
        school_year_id=e.school_year_id,
        enrollment_period_id=e.enrollment_period_id,
        grade_level=e.grade_level,
        quarter=e.quarter,
        payment_plan=e.payment_plan,
        status=e.status,
        payment_status=e.payment_status,
        fees=FeeBreakdown(
            tuition=e.tuition_fee_cents,
            miscellaneous=e.miscellaneous_fee_cents,
            laboratory=e.laboratory_fee_cents,
            discount=e.discount_cents,
            total=e.net_amount_cents,
        ),
        total_amount_cents=e.total_amount_cents,
        discount_type=e.discount_type,
        discount_value=e.discount_value,
        discount_cents=e.discount_cents,
        net_amount_cents=e.net_amount_cents,
        amount_paid_cents=e.amount_paid_cents,
        balance_cents=e.balance_cents,
        payment_due_date=e.payment_due_date,
        remarks=e.remarks,
        approved_by=e.approved_by,
        approved_at=e.approved_at,
        created_at=e.created_at,
        updated_at=e.updated_at,
    )


def _ensure_transition(enrollment: Enrollment, target: EnrollmentStatus) -> EnrollmentStatus:
    """Return the current status, or raise InvalidTransition if target is not reachable from it."""
    current = EnrollmentStatus(enrollment.status)
    if not current.can_transition_to(target):
        logger.warning(
            "Rejected transition %s -> %s for enrollment %s",
            current.value, target.value, enrollment.reference_code,
        )
        raise InvalidTransition(
            f"Enrollment {enrollment.reference_code} cannot move from {current.value} to {target.value}"
        )
    return current


# ----- Eligibility -----

async def can_enroll(db: AsyncSession, student_id: UUID, school_year_id: UUID) -> bool:
    """False when the student already has a pending or enrolled application for the school year."""
    return not await repository.has_active_enrollment(db, student_id, school_year_id)


# ----- Create -----

async def create_enrollment(
    db: AsyncSession,
    payload: EnrollmentCreate,
    now: Optional[datetime] = None,
) -> EnrollmentResponse:
    """
    Create a pending enrollment in the currently open period. Checks, first failure wins:
    open period, student/guardian exist, new/returning policy (returning students are forced
    to the first quarter and may not go below their highest previous grade), no active duplicate.
    payload.school_year_id is ignored. One insert is attempted; a reference code taken by a
    concurrent create raises Conflict and the caller may submit again.
    """
    now = now or _now()
    period = await period_service.get_open_period(db, now.date())
    if period is None:
        raise EnrollmentClosed("Enrollment is currently closed")

    student = await repository.get_student(db, payload.student_id)
    if not student:
        raise NotFound("Student not found")
    guardian = await db.get(Guardian, payload.guardian_id)
    if not guardian:
        raise NotFound("Guardian not found")

    grade_level = GradeLevel(payload.grade_level)
    quarter = Quarter(payload.quarter)
    history = await repository.get_history_grade_levels(db, student.id)
    if not history:
        if not period.allow_new_students:
            raise NewStudentsNotAccepted("This enrollment period is not accepting new students")
    else:
        if not period.allow_returning_students:
            raise ReturningStudentsNotAccepted("This enrollment period is not accepting returning students")
        quarter = Quarter.FIRST
        highest = max(history, key=lambda g: g.order)
        if grade_level.is_lower_than(highest):
            logger.warning(
                "Grade regression for student %s: requested %s, previously %s",
                student.id, grade_level.value, highest.value,
            )
            raise GradeLevelRegression(
                f"Cannot enroll in {grade_level.value}; student was previously enrolled in {highest.value}"
            )

    school_year_id = period.school_year_id
    if not await can_enroll(db, student.id, school_year_id):
        raise DuplicateEnrollment("Student already has an active enrollment for this school year")

    fee_schedule = await repository.get_active_fee_schedule(db, grade_level, period.id)
    fees = calculator.calculate_fees(fee_schedule)
    enrollment = Enrollment(
        reference_code=await repository.next_reference_code(db, now),
        student_id=student.id,
        guardian_id=guardian.id,
        school_year_id=school_year_id,
        enrollment_period_id=period.id,
        grade_level=grade_level.value,
        quarter=quarter.value,
        payment_plan=PaymentPlanKind(payload.payment_plan).value,
        status=EnrollmentStatus.pending.value,
        payment_status=PaymentStatus.pending.value,
        tuition_fee_cents=fees.tuition,
        miscellaneous_fee_cents=fees.miscellaneous,
        laboratory_fee_cents=fees.laboratory,
        total_amount_cents=fees.tuition + fees.miscellaneous + fees.laboratory,
        discount_cents=fees.discount,
        net_amount_cents=fees.total,
        amount_paid_cents=0,
        balance_cents=fees.total,
    )
    student_id, reference_code = student.id, enrollment.reference_code
    try:
        db.add(enrollment)
        await db.flush()
        await audit_service.log_audit(
            db, ENTITY, enrollment.id, "enrollment_created",
            to_status=enrollment.status,
            details={
                "reference_code": enrollment.reference_code,
                "grade_level": enrollment.grade_level,
                "quarter": enrollment.quarter,
                "net_amount_cents": enrollment.net_amount_cents,
            },
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if not await can_enroll(db, student_id, school_year_id):
            raise DuplicateEnrollment("Student already has an active enrollment for this school year")
        # Reference codes come from max()+1, so a concurrent create can take the same one.
        logger.warning("Reference code %s already taken", reference_code)
        raise Conflict(f"Reference code {reference_code} was taken by a concurrent request; submit again")
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    logger.info("Enrollment %s created for student %s", enrollment.reference_code, enrollment.student_id)
    return enrollment_to_response(enrollment)


# ----- Transitions -----

async def _load_for_update(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    enrollment = await repository.get_enrollment(db, enrollment_id, for_update=True)
    if not enrollment:
        raise NotFound("Enrollment not found")
    return enrollment


async def _approve(
    db: AsyncSession,
    enrollment: Enrollment,
    approved_by: Optional[UUID],
    now: datetime,
) -> None:
    from_status = _ensure_transition(enrollment, EnrollmentStatus.enrolled)
    plan = calculator.calculate_payment_plan(enrollment.net_amount_cents, enrollment.payment_plan, now.date())
    enrollment.status = EnrollmentStatus.enrolled.value
    enrollment.approved_by = approved_by
    enrollment.approved_at = now
    enrollment.payment_due_date = plan.schedule[0].due_date

    student = await repository.get_student(db, enrollment.student_id, for_update=True)
    if student is not None:
        student.current_grade_level = enrollment.grade_level

    await audit_service.log_audit(
        db, ENTITY, enrollment.id, "enrollment_approved",
        from_status=from_status.value, to_status=enrollment.status, performed_by=approved_by,
    )


async def approve_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    approved_by: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> EnrollmentResponse:
    """pending -> enrolled. Also sets the first installment due date and the student's current grade level."""
    try:
        enrollment = await _load_for_update(db, enrollment_id)
        await _approve(db, enrollment, approved_by, now or _now())
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    logger.info("Enrollment %s approved", enrollment.reference_code)
    return enrollment_to_response(enrollment)


async def reject_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    reason: str,
    rejected_by: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> EnrollmentResponse:
    """pending -> rejected. Terminal."""
    try:
        enrollment = await _load_for_update(db, enrollment_id)
        from_status = _ensure_transition(enrollment, EnrollmentStatus.rejected)
        enrollment.status = EnrollmentStatus.rejected.value
        enrollment.remarks = reason
        enrollment.approved_by = rejected_by
        enrollment.approved_at = now or _now()
        await audit_service.log_audit(
            db, ENTITY, enrollment.id, "enrollment_rejected",
            from_status=from_status.value, to_status=enrollment.status,
            performed_by=rejected_by, remarks=reason,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    logger.info("Enrollment %s rejected", enrollment.reference_code)
    return enrollment_to_response(enrollment)


async def _finish(
    db: AsyncSession,
    enrollment_id: UUID,
    target: EnrollmentStatus,
    action: str,
    performed_by: Optional[UUID],
    reason: Optional[str],
) -> EnrollmentResponse:
    try:
        enrollment = await _load_for_update(db, enrollment_id)
        from_status = _ensure_transition(enrollment, target)
        enrollment.status = target.value
        if reason:
            enrollment.remarks = reason
        await audit_service.log_audit(
            db, ENTITY, enrollment.id, action,
            from_status=from_status.value, to_status=enrollment.status,
            performed_by=performed_by, remarks=reason,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    logger.info("Enrollment %s %s", enrollment.reference_code, target.value)
    return enrollment_to_response(enrollment)


async def complete_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    performed_by: Optional[UUID] = None,
) -> EnrollmentResponse:
    return await _finish(db, enrollment_id, EnrollmentStatus.completed, "enrollment_completed", performed_by, None)


async def withdraw_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    performed_by: Optional[UUID] = None,
    reason: Optional[str] = None,
) -> EnrollmentResponse:
    return await _finish(db, enrollment_id, EnrollmentStatus.withdrawn, "enrollment_withdrawn", performed_by, reason)


async def bulk_approve(
    db: AsyncSession,
    enrollment_ids: Sequence[UUID],
    approved_by: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Approve every pending enrollment among enrollment_ids; others (and unknown ids) are skipped.
    All-or-nothing: any failure rolls back the whole batch.
    """
    now = now or _now()
    try:
        enrollments = await repository.get_enrollments_for_update(
            db, enrollment_ids, status=EnrollmentStatus.pending.value
        )
        for enrollment in enrollments:
            await _approve(db, enrollment, approved_by, now)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Bulk approval of %d enrollments rolled back", len(enrollment_ids))
        raise
    logger.info("Bulk approved %d of %d enrollments", len(enrollments), len(enrollment_ids))
    return len(enrollments)


# ----- Reads -----

async def get_enrollment(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    enrollment = await repository.get_enrollment(db, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    return enrollment_to_response(enrollment)


async def list_enrollments(
    db: AsyncSession,
    filters: Optional[EnrollmentFilters] = None,
    page: int = 1,
    per_page: int = 20,
) -> Page[EnrollmentResponse]:
    filters = filters or EnrollmentFilters()
    page = max(1, page)
    per_page = max(1, min(per_page, 100))
    stmt = select(Enrollment)
    if filters.status is not None:
        stmt = stmt.where(Enrollment.status == EnrollmentStatus(filters.status).value)
    if filters.school_year_id is not None:
        stmt = stmt.where(Enrollment.school_year_id == filters.school_year_id)
    if filters.grade_level is not None:
        stmt = stmt.where(Enrollment.grade_level == GradeLevel(filters.grade_level).value)
    if filters.student_id is not None:
        stmt = stmt.where(Enrollment.student_id == filters.student_id)
    if filters.guardian_id is not None:
        stmt = stmt.where(Enrollment.guardian_id == filters.guardian_id)
    if filters.created_from is not None:
        stmt = stmt.where(Enrollment.created_at >= _day_start(filters.created_from))
    if filters.created_to is not None:
        stmt = stmt.where(Enrollment.created_at < _day_start(filters.created_to + timedelta(days=1)))
    stmt = stmt.order_by(Enrollment.created_at.desc(), Enrollment.reference_code.desc())

    rows, total = await repository.paginate_enrollments(db, stmt, page, per_page)
    return Page[EnrollmentResponse](
        items=[enrollment_to_response(e) for e in rows],
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total else 0,
    )


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


# ----- Statistics -----

# Rejected applications never owed anything; every other status counts toward billed totals.
BILLED_STATUSES = (
    EnrollmentStatus.pending.value,
    EnrollmentStatus.enrolled.value,
    EnrollmentStatus.completed.value,
    EnrollmentStatus.withdrawn.value,
)


async def get_statistics(db: AsyncSession, school_year_id: Optional[UUID] = None) -> EnrollmentStatistics:
    """Per-year enrollment and payment counts. Defaults to the active period's school year."""
    if school_year_id is None:
        period = await period_service.get_active_period(db)
        if period is None:
            raise NotFound("No active enrollment period; pass a school year")
        school_year_id = period.school_year_id
    by_status = await repository.count_by(db, Enrollment.status, school_year_id)
    by_payment_status = await repository.count_by(
        db, Enrollment.payment_status, school_year_id, statuses=BILLED_STATUSES
    )
    billed, collected, outstanding = await repository.sum_amounts(db, school_year_id, BILLED_STATUSES)
    return EnrollmentStatistics(
        school_year_id=school_year_id,
        total=sum(by_status.values()),
        by_status={s: by_status.get(s.value, 0) for s in EnrollmentStatus},
        by_payment_status={s: by_payment_status.get(s.value, 0) for s in PaymentStatus},
        total_billed_cents=billed,
        total_collected_cents=collected,
        total_outstanding_cents=outstanding,
    )
