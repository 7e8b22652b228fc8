"""Invoices issued from enrollments, overdue tracking and guardian billing summaries."""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.api.v1.billing import service as billing_service
from app.api.v1.billing.schemas import PaymentCreate
from app.api.v1.enrollments import repository
from app.api.v1.enrollments import service as enrollment_service
from app.api.v1.enrollments.schemas import EnrollmentCreate
from app.core.enums import DiscountType, EnrollmentStatus, GradeLevel, InvoiceStatus, PaymentMethod, PaymentStatus
from app.core.exceptions import Conflict, InvalidTransition, NotFound, ValidationFailed
from app.core.models import AuditLog


TODAY = date(2026, 6, 1)


def _cash(amount: int) -> PaymentCreate:
    return PaymentCreate(amount_cents=amount, method=PaymentMethod.CASH)


@pytest.fixture()
async def grade_two(db_session, grade_fees, student, guardian):
    """Grade 2 enrollment created through the service: 22,000 tuition, 5,000 misc, 1,000 lab."""
    return await enrollment_service.create_enrollment(
        db_session,
        EnrollmentCreate(student_id=student.id, guardian_id=guardian.id, grade_level=GradeLevel.GRADE_2),
    )


async def test_invoice_itemizes_fee_snapshot(db_session, grade_two) -> None:
    issuer = uuid4()
    invoice = await billing_service.generate_invoice(db_session, grade_two.id, issued_by=issuer, today=TODAY)

    assert invoice.invoice_number == "INV-202606-0001"
    assert invoice.status == InvoiceStatus.sent
    assert invoice.invoice_date == TODAY
    assert invoice.due_date == TODAY + timedelta(days=30)
    assert [(i.description, i.amount_cents) for i in invoice.items] == [
        ("Tuition Fee - Grade 2", 2_200_000),
        ("Miscellaneous Fee", 500_000),
        ("Laboratory Fee", 100_000),
    ]
    assert invoice.total_amount_cents == grade_two.net_amount_cents == 2_800_000
    assert invoice.balance_cents == 2_800_000
    assert invoice.issued_by == issuer

    log = (await db_session.execute(select(AuditLog).where(AuditLog.action == "invoice_generated"))).scalar_one()
    assert log.details["invoice_number"] == "INV-202606-0001"
    assert log.details["cancelled_invoice_id"] is None


async def test_payments_and_refunds_track_invoice(db_session, grade_two) -> None:
    invoice = await billing_service.generate_invoice(db_session, grade_two.id, today=TODAY)

    first = await billing_service.record_payment(db_session, grade_two.id, _cash(800_000))
    assert first.payment.invoice_id == invoice.id
    current = await billing_service.get_invoice(db_session, invoice.id, today=TODAY)
    assert current.status == InvoiceStatus.partially_paid
    assert current.paid_amount_cents == 800_000
    assert current.balance_cents == 2_000_000

    await billing_service.record_payment(db_session, grade_two.id, _cash(2_000_000))
    assert (await billing_service.get_invoice(db_session, invoice.id, today=TODAY)).status == InvoiceStatus.paid

    refund = await billing_service.refund_payment(db_session, first.payment.id, 300_000, "Sibling discount")
    assert refund.payment.invoice_id == invoice.id
    current = await billing_service.get_invoice(db_session, invoice.id, today=TODAY)
    assert current.status == InvoiceStatus.partially_paid
    assert current.paid_amount_cents == 2_500_000
    assert current.balance_cents == 300_000


async def test_payment_without_invoice_is_unlinked(db_session, grade_two) -> None:
    result = await billing_service.record_payment(db_session, grade_two.id, _cash(100_000))
    assert result.payment.invoice_id is None
    assert await billing_service.list_invoices(db_session, grade_two.id) == []


async def test_discount_reitemizes_current_invoice(db_session, grade_two) -> None:
    invoice = await billing_service.generate_invoice(db_session, grade_two.id, today=TODAY)
    await billing_service.apply_discount(db_session, grade_two.id, DiscountType.fixed, 280_000)

    current = await billing_service.get_invoice(db_session, invoice.id, today=TODAY)
    assert current.items[-1].description == "Discount"
    assert current.items[-1].amount_cents == -280_000
    assert len(current.items) == 4
    assert current.total_amount_cents == 2_520_000
    assert sum(i.amount_cents for i in current.items) == current.total_amount_cents


async def test_regenerating_cancels_previous_invoice(db_session, grade_two) -> None:
    first = await billing_service.generate_invoice(db_session, grade_two.id, today=TODAY)
    second = await billing_service.generate_invoice(
        db_session, grade_two.id, due_date=TODAY + timedelta(days=7), today=TODAY
    )

    assert second.invoice_number == "INV-202606-0002"
    assert second.due_date == TODAY + timedelta(days=7)
    invoices = {i.id: i for i in await billing_service.list_invoices(db_session, grade_two.id, today=TODAY)}
    assert invoices[first.id].status == InvoiceStatus.cancelled
    assert invoices[second.id].status == InvoiceStatus.sent

    paid = await billing_service.record_payment(db_session, grade_two.id, _cash(100_000))
    assert paid.payment.invoice_id == second.id


async def test_invoice_numbers_restart_each_month(db_session, grade_two) -> None:
    await billing_service.generate_invoice(db_session, grade_two.id, today=TODAY)
    july = await billing_service.generate_invoice(db_session, grade_two.id, today=date(2026, 7, 3))
    assert july.invoice_number == "INV-202607-0001"


async def test_taken_invoice_number_is_a_conflict(
    db_session, make_enrollment, open_period, make_student, monkeypatch
) -> None:
    first = await make_enrollment(await make_student("Ana", "Cruz"), open_period)
    second = await make_enrollment(await make_student("Ben", "Cruz"), open_period)
    second_id = second.id
    taken = await billing_service.generate_invoice(db_session, first.id, today=TODAY)

    async def same_number(db, today):
        return taken.invoice_number

    monkeypatch.setattr(repository, "next_invoice_number", same_number)
    with pytest.raises(Conflict):
        await billing_service.generate_invoice(db_session, second_id, today=TODAY)
    assert await billing_service.list_invoices(db_session, second_id) == []


async def test_zero_charge_enrollment_cannot_be_invoiced(db_session, make_enrollment, open_period, student) -> None:
    e = await make_enrollment(student, open_period, net_amount_cents=0)
    enrollment_id = e.id
    with pytest.raises(ValidationFailed):
        await billing_service.generate_invoice(db_session, enrollment_id, today=TODAY)
    assert await billing_service.list_invoices(db_session, enrollment_id) == []


async def test_rejected_enrollment_cannot_be_invoiced(db_session, make_enrollment, open_period, student) -> None:
    e = await make_enrollment(student, open_period, status=EnrollmentStatus.rejected)
    with pytest.raises(InvalidTransition):
        await billing_service.generate_invoice(db_session, e.id, today=TODAY)


async def test_unknown_invoice(db_session) -> None:
    with pytest.raises(NotFound):
        await billing_service.get_invoice(db_session, uuid4())
    with pytest.raises(NotFound):
        await billing_service.list_invoices(db_session, uuid4())


# ----- Overdue -----

async def test_overdue_listing(db_session, make_enrollment, open_period, make_student) -> None:
    late = await make_enrollment(await make_student("Late", "Payer"), open_period, net_amount_cents=1_000_000)
    settled = await make_enrollment(await make_student("On", "Time"), open_period, net_amount_cents=1_000_000)
    current = await make_enrollment(await make_student("Not", "Due"), open_period, net_amount_cents=1_000_000)

    overdue = await billing_service.generate_invoice(db_session, late.id, due_date=TODAY - timedelta(days=1), today=TODAY)
    await billing_service.generate_invoice(db_session, settled.id, due_date=TODAY - timedelta(days=1), today=TODAY)
    await billing_service.record_payment(db_session, settled.id, _cash(1_000_000))
    await billing_service.generate_invoice(db_session, current.id, due_date=TODAY + timedelta(days=1), today=TODAY)

    listed = await billing_service.list_overdue_invoices(db_session, today=TODAY)
    assert [i.id for i in listed] == [overdue.id]
    assert listed[0].status == InvoiceStatus.overdue

    assert await billing_service.list_overdue_invoices(db_session, today=TODAY - timedelta(days=1)) == []


# ----- Guardian summary -----

async def test_guardian_summary_totals(db_session, guardian, make_enrollment, open_period, make_student) -> None:
    older = await make_student("Ana", "Santos")
    younger = await make_student("Ben", "Santos")
    applicant = await make_student("Carlo", "Santos")
    await make_enrollment(older, open_period, status=EnrollmentStatus.enrolled, net_amount_cents=2_500_000, amount_paid_cents=1_000_000)
    await make_enrollment(younger, open_period, net_amount_cents=2_000_000)
    await make_enrollment(applicant, open_period, status=EnrollmentStatus.rejected, net_amount_cents=3_000_000)

    summary = await billing_service.get_guardian_billing_summary(db_session, guardian.id)

    assert summary.guardian_id == guardian.id
    assert sorted(b.student_name for b in summary.enrollments) == ["Ana Santos", "Ben Santos"]
    assert summary.total_net_amount_cents == 4_500_000
    assert summary.total_amount_paid_cents == 1_000_000
    assert summary.total_balance_cents == 3_500_000
    assert summary.formatted_total_balance == "₱35,000.00"
    statuses = {b.student_name: b.payment_status for b in summary.enrollments}
    assert statuses == {"Ana Santos": PaymentStatus.partial, "Ben Santos": PaymentStatus.pending}


async def test_guardian_summary_without_enrollments(db_session, guardian) -> None:
    summary = await billing_service.get_guardian_billing_summary(db_session, guardian.id)
    assert summary.enrollments == []
    assert summary.total_balance_cents == 0


async def test_guardian_summary_unknown_guardian(db_session) -> None:
    with pytest.raises(NotFound):
        await billing_service.get_guardian_billing_summary(db_session, uuid4())
