"""
Narrow load/save queries for enrollments and the records they depend on.
Nothing here commits; the calling service owns the transaction.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import (
    ACTIVE_ENROLLMENT_STATUSES,
    HISTORY_ENROLLMENT_STATUSES,
    OPEN_INVOICE_STATUSES,
    EnrollmentStatus,
    GradeLevel,
    InvoiceStatus,
)
from app.core.models import Enrollment, GradeLevelFee, Invoice, Payment, Student


def _status_values(statuses) -> List[str]:
    return [s.value for s in statuses]


async def get_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    for_update: bool = False,
) -> Optional[Enrollment]:
    stmt = select(Enrollment).where(Enrollment.id == enrollment_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_enrollments_for_update(
    db: AsyncSession,
    enrollment_ids: Sequence[UUID],
    status: Optional[str] = None,
) -> List[Enrollment]:
    stmt = select(Enrollment).where(Enrollment.id.in_(list(enrollment_ids)))
    if status is not None:
        stmt = stmt.where(Enrollment.status == status)
    stmt = stmt.order_by(Enrollment.created_at).with_for_update()
    return list((await db.execute(stmt)).scalars().all())


async def get_student(db: AsyncSession, student_id: UUID, for_update: bool = False) -> Optional[Student]:
    stmt = select(Student).where(Student.id == student_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def has_active_enrollment(db: AsyncSession, student_id: UUID, school_year_id: UUID) -> bool:
    """True when a pending or enrolled application exists for (student, school year)."""
    stmt = select(Enrollment.id).where(
        Enrollment.student_id == student_id,
        Enrollment.school_year_id == school_year_id,
        Enrollment.status.in_(_status_values(ACTIVE_ENROLLMENT_STATUSES)),
    ).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def get_history_grade_levels(db: AsyncSession, student_id: UUID) -> List[GradeLevel]:
    """Grade levels of the student's enrolled/completed enrollments, any school year."""
    stmt = select(Enrollment.grade_level).where(
        Enrollment.student_id == student_id,
        Enrollment.status.in_(_status_values(HISTORY_ENROLLMENT_STATUSES)),
    )
    rows = (await db.execute(stmt)).scalars().all()
    return [GradeLevel(g) for g in rows]


async def get_active_fee_schedule(
    db: AsyncSession,
    grade_level: GradeLevel,
    enrollment_period_id: Optional[UUID],
) -> Optional[GradeLevelFee]:
    if enrollment_period_id is None:
        return None
    stmt = select(GradeLevelFee).where(
        GradeLevelFee.grade_level == GradeLevel(grade_level).value,
        GradeLevelFee.enrollment_period_id == enrollment_period_id,
        GradeLevelFee.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def next_reference_code(db: AsyncSession, now: datetime) -> str:
    """Sequential per calendar year of creation: ENR-2026-00001, ENR-2026-00002, ..."""
    prefix = f"{settings.enrollment_reference_prefix}-{now.year}-"
    last = (
        await db.execute(
            select(func.max(Enrollment.reference_code)).where(Enrollment.reference_code.like(f"{prefix}%"))
        )
    ).scalar()
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:05d}"


async def get_payment(db: AsyncSession, payment_id: UUID, for_update: bool = False) -> Optional[Payment]:
    stmt = select(Payment).where(Payment.id == payment_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_refunded_total(db: AsyncSession, payment_id: UUID) -> int:
    """Sum (as a positive number) of refunds already issued against a payment."""
    total = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(Payment.refund_of_id == payment_id)
        )
    ).scalar() or 0
    return -int(total)


async def list_payments(db: AsyncSession, enrollment_id: UUID) -> List[Payment]:
    stmt = (
        select(Payment)
        .where(Payment.enrollment_id == enrollment_id)
        .order_by(Payment.paid_at.desc(), Payment.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def paginate_enrollments(
    db: AsyncSession,
    stmt,
    page: int,
    per_page: int,
) -> Tuple[List[Enrollment], int]:
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar() or 0
    rows = (await db.execute(stmt.offset((page - 1) * per_page).limit(per_page))).scalars().all()
    return list(rows), int(total)


# ----- Invoices -----

async def get_invoice(db: AsyncSession, invoice_id: UUID) -> Optional[Invoice]:
    return (await db.execute(select(Invoice).where(Invoice.id == invoice_id))).scalar_one_or_none()


async def get_current_invoice(db: AsyncSession, enrollment_id: UUID, for_update: bool = False) -> Optional[Invoice]:
    """The enrollment's latest invoice that has not been cancelled, if any."""
    stmt = (
        select(Invoice)
        .where(
            Invoice.enrollment_id == enrollment_id,
            Invoice.status != InvoiceStatus.cancelled.value,
        )
        .order_by(Invoice.created_at.desc())
        .limit(1)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_invoices(db: AsyncSession, enrollment_id: UUID) -> List[Invoice]:
    stmt = (
        select(Invoice)
        .where(Invoice.enrollment_id == enrollment_id)
        .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_overdue_invoices(db: AsyncSession, today: date) -> List[Invoice]:
    """Open invoices whose due date has passed, oldest due first."""
    stmt = (
        select(Invoice)
        .where(
            Invoice.due_date < today,
            Invoice.status.in_(_status_values(OPEN_INVOICE_STATUSES)),
        )
        .order_by(Invoice.due_date, Invoice.invoice_number)
    )
    return list((await db.execute(stmt)).scalars().all())


async def next_invoice_number(db: AsyncSession, today: date) -> str:
    """Sequential per calendar month: INV-202606-0001, INV-202606-0002, ..."""
    prefix = f"INV-{today:%Y%m}-"
    last = (
        await db.execute(
            select(func.max(Invoice.invoice_number)).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
    ).scalar()
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


# ----- Summaries -----

async def list_guardian_enrollments(db: AsyncSession, guardian_id: UUID) -> List[Tuple[Enrollment, Student]]:
    """Every non-rejected enrollment of the guardian with its student, newest first."""
    stmt = (
        select(Enrollment, Student)
        .join(Student, Student.id == Enrollment.student_id)
        .where(
            Enrollment.guardian_id == guardian_id,
            Enrollment.status != EnrollmentStatus.rejected.value,
        )
        .order_by(Enrollment.created_at.desc(), Enrollment.reference_code.desc())
    )
    return [(e, s) for e, s in (await db.execute(stmt)).all()]


async def count_by(
    db: AsyncSession,
    column,
    school_year_id: UUID,
    statuses: Optional[Sequence[str]] = None,
) -> Dict[str, int]:
    """Enrollment counts for a school year grouped by one column (status or payment_status)."""
    stmt = select(column, func.count()).where(Enrollment.school_year_id == school_year_id)
    if statuses is not None:
        stmt = stmt.where(Enrollment.status.in_(list(statuses)))
    stmt = stmt.group_by(column)
    return {value: int(count) for value, count in (await db.execute(stmt)).all()}


async def sum_amounts(db: AsyncSession, school_year_id: UUID, statuses: Sequence[str]) -> Tuple[int, int, int]:
    """(net billed, collected, outstanding) over the school year's enrollments in the given statuses."""
    stmt = select(
        func.coalesce(func.sum(Enrollment.net_amount_cents), 0),
        func.coalesce(func.sum(Enrollment.amount_paid_cents), 0),
        func.coalesce(func.sum(Enrollment.balance_cents), 0),
    ).where(
        Enrollment.school_year_id == school_year_id,
        Enrollment.status.in_(list(statuses)),
    )
    billed, collected, outstanding = (await db.execute(stmt)).one()
    return int(billed), int(collected), int(outstanding)
