"""
Billing: fee lookup, payments, refunds, discounts and invoices against an enrollment's fee snapshot.
Arithmetic lives in calculator.py; this module loads, persists, audits and commits.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.currency import format_cents
from app.core.enums import DiscountType, EnrollmentStatus, GradeLevel, InvoiceStatus
from app.core.exceptions import (
    Conflict,
    InvalidPaymentAmount,
    InvalidTransition,
    NotFound,
    OverpaymentRejected,
    ValidationFailed,
)
from app.core.models import Enrollment, Guardian, Invoice, InvoiceItem, Payment
from app.core.schemas import FeeBreakdown

from app.api.v1.enrollments import audit_service, repository
from app.api.v1.enrollments.service import enrollment_to_response
from app.api.v1.enrollments.schemas import EnrollmentResponse

from . import calculator
from .schemas import (
    BillingDetailsResponse,
    FormattedAmounts,
    GuardianBillingSummary,
    GuardianEnrollmentBalance,
    InvoiceItemResponse,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentResult,
)

logger = logging.getLogger(__name__)

# Payments and discounts are only accepted while the enrollment is live.
BILLABLE_STATUSES = (EnrollmentStatus.pending.value, EnrollmentStatus.enrolled.value)


async def _load_billable(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    enrollment = await repository.get_enrollment(db, enrollment_id, for_update=True)
    if not enrollment:
        raise NotFound("Enrollment not found")
    if enrollment.status not in BILLABLE_STATUSES:
        raise InvalidTransition(
            f"Enrollment {enrollment.reference_code} is {enrollment.status}; billing changes are not allowed"
        )
    return enrollment


# ----- Fees -----

async def calculate_fees(
    db: AsyncSession,
    grade_level: GradeLevel,
    enrollment_period_id: UUID,
    discount_percent: Union[Decimal, int] = 0,
) -> FeeBreakdown:
    """Breakdown from the active fee schedule for (grade level, period); all zeros when none exists."""
    fee_schedule = await repository.get_active_fee_schedule(db, grade_level, enrollment_period_id)
    if fee_schedule is None:
        logger.info("No active fee schedule for %s in period %s", GradeLevel(grade_level).value, enrollment_period_id)
    return calculator.calculate_fees(fee_schedule, discount_percent)


# ----- Payments -----

async def record_payment(
    db: AsyncSession,
    enrollment_id: UUID,
    payload: PaymentCreate,
    processed_by: Optional[UUID] = None,
) -> PaymentResult:
    """Append a payment and re-derive amount paid, balance and payment status. Overpayments are rejected."""
    if payload.amount_cents <= 0:
        raise InvalidPaymentAmount("Payment amount must be greater than zero")
    try:
        enrollment = await _load_billable(db, enrollment_id)
        if payload.amount_cents > enrollment.balance_cents:
            logger.warning(
                "Overpayment rejected for %s: amount=%d balance=%d",
                enrollment.reference_code, payload.amount_cents, enrollment.balance_cents,
            )
            raise OverpaymentRejected(
                f"Payment of {format_cents(payload.amount_cents)} exceeds the outstanding balance "
                f"of {format_cents(enrollment.balance_cents)}"
            )
        result = calculator.compute_payment(
            enrollment.net_amount_cents, enrollment.amount_paid_cents, payload.amount_cents
        )
        invoice = await repository.get_current_invoice(db, enrollment.id, for_update=True)
        old_status = enrollment.payment_status
        payment = Payment(
            enrollment_id=enrollment.id,
            invoice_id=invoice.id if invoice is not None else None,
            amount_cents=payload.amount_cents,
            method=payload.method.value,
            reference=payload.reference,
            notes=payload.notes,
            paid_at=payload.paid_at or datetime.now(timezone.utc),
            processed_by=processed_by,
        )
        db.add(payment)
        enrollment.amount_paid_cents = result.amount_paid
        enrollment.balance_cents = result.balance
        enrollment.payment_status = result.payment_status.value
        if invoice is not None:
            _sync_invoice(invoice, enrollment)
        await db.flush()
        await audit_service.log_audit(
            db, "enrollment", enrollment.id, "payment_recorded",
            from_status=old_status, to_status=enrollment.payment_status,
            performed_by=processed_by,
            details={"payment_id": str(payment.id), "amount_cents": payment.amount_cents, "method": payment.method},
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    await db.refresh(payment)
    logger.info("Payment %s of %d recorded on %s", payment.id, payment.amount_cents, enrollment.reference_code)
    return PaymentResult(
        payment=PaymentResponse.model_validate(payment),
        enrollment=enrollment_to_response(enrollment),
    )


async def refund_payment(
    db: AsyncSession,
    payment_id: UUID,
    amount_cents: int,
    reason: str,
    processed_by: Optional[UUID] = None,
) -> PaymentResult:
    """
    Refund part or all of a payment as a new negative payment linked to it. The original row is
    never modified; the refundable remainder is the original amount minus earlier refunds.
    """
    if amount_cents <= 0:
        raise InvalidPaymentAmount("Refund amount must be greater than zero")
    try:
        original = await repository.get_payment(db, payment_id, for_update=True)
        if not original:
            raise NotFound("Payment not found")
        if original.refund_of_id is not None or original.amount_cents <= 0:
            raise InvalidPaymentAmount("Only original payments can be refunded")
        refundable = original.amount_cents - await repository.get_refunded_total(db, original.id)
        if amount_cents > refundable:
            raise InvalidPaymentAmount(
                f"Refund of {format_cents(amount_cents)} exceeds the refundable {format_cents(refundable)}"
            )
        enrollment = await repository.get_enrollment(db, original.enrollment_id, for_update=True)
        result = calculator.compute_payment(
            enrollment.net_amount_cents, enrollment.amount_paid_cents, -amount_cents
        )
        invoice = await repository.get_current_invoice(db, enrollment.id, for_update=True)
        old_status = enrollment.payment_status
        refund = Payment(
            enrollment_id=enrollment.id,
            amount_cents=-amount_cents,
            method=original.method,
            reference=original.reference,
            notes=reason,
            refund_of_id=original.id,
            invoice_id=original.invoice_id,
            paid_at=datetime.now(timezone.utc),
            processed_by=processed_by,
        )
        db.add(refund)
        enrollment.amount_paid_cents = result.amount_paid
        enrollment.balance_cents = result.balance
        enrollment.payment_status = result.payment_status.value
        if invoice is not None:
            _sync_invoice(invoice, enrollment)
        await db.flush()
        await audit_service.log_audit(
            db, "enrollment", enrollment.id, "payment_refunded",
            from_status=old_status, to_status=enrollment.payment_status,
            performed_by=processed_by, remarks=reason,
            details={"payment_id": str(refund.id), "refund_of_id": str(original.id), "amount_cents": -amount_cents},
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    await db.refresh(refund)
    logger.info("Refund %s of %d issued against payment %s", refund.id, amount_cents, original.id)
    return PaymentResult(
        payment=PaymentResponse.model_validate(refund),
        enrollment=enrollment_to_response(enrollment),
    )


async def list_payments(db: AsyncSession, enrollment_id: UUID) -> List[PaymentResponse]:
    enrollment = await repository.get_enrollment(db, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    return [PaymentResponse.model_validate(p) for p in await repository.list_payments(db, enrollment_id)]


# ----- Discounts -----

async def apply_discount(
    db: AsyncSession,
    enrollment_id: UUID,
    discount_type: DiscountType,
    value: Union[Decimal, int],
    applied_by: Optional[UUID] = None,
) -> EnrollmentResponse:
    """Replace the enrollment's discount; net amount, balance and payment status are recomputed."""
    try:
        enrollment = await _load_billable(db, enrollment_id)
        result = calculator.compute_discount(
            enrollment.total_amount_cents, enrollment.amount_paid_cents, discount_type, value
        )
        old = {"discount_cents": enrollment.discount_cents, "net_amount_cents": enrollment.net_amount_cents}
        old_status = enrollment.payment_status
        enrollment.discount_type = DiscountType(discount_type).value
        enrollment.discount_value = Decimal(str(value))
        enrollment.discount_cents = result.discount
        enrollment.net_amount_cents = result.net_amount
        enrollment.balance_cents = result.balance
        enrollment.payment_status = result.payment_status.value
        invoice = await repository.get_current_invoice(db, enrollment.id, for_update=True)
        if invoice is not None:
            _itemize(invoice, enrollment)
            _sync_invoice(invoice, enrollment)
        await audit_service.log_audit(
            db, "enrollment", enrollment.id, "discount_applied",
            from_status=old_status, to_status=enrollment.payment_status,
            performed_by=applied_by,
            details={
                "old": old,
                "new": {"discount_cents": result.discount, "net_amount_cents": result.net_amount},
                "discount_type": enrollment.discount_type,
                "value": str(enrollment.discount_value),
            },
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(enrollment)
    logger.info("Discount %s applied to %s", enrollment.discount_cents, enrollment.reference_code)
    return enrollment_to_response(enrollment)


# ----- Billing details -----

async def get_billing_details(
    db: AsyncSession,
    enrollment_id: UUID,
    today: Optional[date] = None,
) -> BillingDetailsResponse:
    enrollment = await repository.get_enrollment(db, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    today = today or date.today()
    late_fee = calculator.calculate_late_fee(
        enrollment.balance_cents,
        enrollment.payment_due_date,
        enrollment.payment_status,
        today,
        grace_days=settings.late_fee_grace_days,
        rate_percent=settings.late_fee_rate_percent,
    )
    formatted = FormattedAmounts(
        tuition=format_cents(enrollment.tuition_fee_cents),
        miscellaneous=format_cents(enrollment.miscellaneous_fee_cents),
        laboratory=format_cents(enrollment.laboratory_fee_cents),
        total=format_cents(enrollment.total_amount_cents),
        discount=format_cents(enrollment.discount_cents),
        net_amount=format_cents(enrollment.net_amount_cents),
        amount_paid=format_cents(enrollment.amount_paid_cents),
        balance=format_cents(enrollment.balance_cents),
        late_fee=format_cents(late_fee),
    )
    return BillingDetailsResponse(
        enrollment_id=enrollment.id,
        reference_code=enrollment.reference_code,
        payment_status=enrollment.payment_status,
        payment_plan=calculator.resolve_plan_kind(enrollment.payment_plan),
        payment_due_date=enrollment.payment_due_date,
        total_amount_cents=enrollment.total_amount_cents,
        discount_cents=enrollment.discount_cents,
        net_amount_cents=enrollment.net_amount_cents,
        amount_paid_cents=enrollment.amount_paid_cents,
        balance_cents=enrollment.balance_cents,
        late_fee_cents=late_fee,
        formatted=formatted,
        payment_plans=calculator.get_payment_plans(enrollment.net_amount_cents, today),
    )


# ----- Invoices -----

def _itemize(invoice: Invoice, enrollment: Enrollment) -> None:
    """Rebuild the invoice items from the enrollment's fee snapshot and recalculate the total."""
    invoice.items.clear()
    for position, line in enumerate(calculator.build_invoice_lines(enrollment)):
        invoice.items.append(
            InvoiceItem(
                position=position,
                description=line.description,
                quantity=1,
                unit_price_cents=line.amount,
                amount_cents=line.amount,
            )
        )
    invoice.total_amount_cents = sum(item.amount_cents for item in invoice.items)


def _sync_invoice(invoice: Invoice, enrollment: Enrollment, today: Optional[date] = None) -> None:
    invoice.paid_amount_cents = enrollment.amount_paid_cents
    invoice.status = calculator.derive_invoice_status(
        invoice.total_amount_cents, invoice.paid_amount_cents, invoice.due_date, today
    ).value


def invoice_to_response(invoice: Invoice, today: Optional[date] = None) -> InvoiceResponse:
    """Status is re-derived on read so an unpaid invoice shows as overdue once its due date passes."""
    status = InvoiceStatus(invoice.status)
    if status != InvoiceStatus.cancelled:
        status = calculator.derive_invoice_status(
            invoice.total_amount_cents, invoice.paid_amount_cents, invoice.due_date, today
        )
    return InvoiceResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        enrollment_id=invoice.enrollment_id,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        status=status,
        total_amount_cents=invoice.total_amount_cents,
        paid_amount_cents=invoice.paid_amount_cents,
        balance_cents=max(0, invoice.total_amount_cents - invoice.paid_amount_cents),
        items=[InvoiceItemResponse.model_validate(item) for item in invoice.items],
        issued_by=invoice.issued_by,
        created_at=invoice.created_at,
    )


async def generate_invoice(
    db: AsyncSession,
    enrollment_id: UUID,
    due_date: Optional[date] = None,
    issued_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> InvoiceResponse:
    """
    Issue an invoice for the enrollment's current fee snapshot. The enrollment's previous
    invoice, if any, is cancelled; later payments, refunds and discounts update the new one.
    """
    today = today or date.today()
    try:
        enrollment = await _load_billable(db, enrollment_id)
        if enrollment.net_amount_cents <= 0:
            raise ValidationFailed(f"Enrollment {enrollment.reference_code} has no charges to invoice")
        previous = await repository.get_current_invoice(db, enrollment.id, for_update=True)
        if previous is not None:
            previous.status = InvoiceStatus.cancelled.value
        invoice = Invoice(
            invoice_number=await repository.next_invoice_number(db, today),
            enrollment_id=enrollment.id,
            invoice_date=today,
            due_date=due_date or enrollment.payment_due_date or today + timedelta(days=30),
            issued_by=issued_by,
        )
        _itemize(invoice, enrollment)
        _sync_invoice(invoice, enrollment, today)
        db.add(invoice)
        await db.flush()
        await audit_service.log_audit(
            db, "enrollment", enrollment.id, "invoice_generated",
            to_status=invoice.status, performed_by=issued_by,
            details={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "total_amount_cents": invoice.total_amount_cents,
                "cancelled_invoice_id": str(previous.id) if previous is not None else None,
            },
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Invoice number was taken by a concurrent request; submit again")
    except Exception:
        await db.rollback()
        raise
    logger.info("Invoice %s issued for %s", invoice.invoice_number, enrollment.reference_code)
    return invoice_to_response(invoice, today)


async def get_invoice(db: AsyncSession, invoice_id: UUID, today: Optional[date] = None) -> InvoiceResponse:
    invoice = await repository.get_invoice(db, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice_to_response(invoice, today)


async def list_invoices(db: AsyncSession, enrollment_id: UUID, today: Optional[date] = None) -> List[InvoiceResponse]:
    enrollment = await repository.get_enrollment(db, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    return [invoice_to_response(i, today) for i in await repository.list_invoices(db, enrollment_id)]


async def list_overdue_invoices(db: AsyncSession, today: Optional[date] = None) -> List[InvoiceResponse]:
    """Invoices past their due date that are neither paid nor cancelled."""
    today = today or date.today()
    return [invoice_to_response(i, today) for i in await repository.list_overdue_invoices(db, today)]


# ----- Guardian summary -----

async def get_guardian_billing_summary(db: AsyncSession, guardian_id: UUID) -> GuardianBillingSummary:
    """Per-enrollment balances for every child of a guardian (rejected applications excluded), with totals."""
    guardian = await db.get(Guardian, guardian_id)
    if not guardian:
        raise NotFound("Guardian not found")
    balances = [
        GuardianEnrollmentBalance(
            enrollment_id=e.id,
            reference_code=e.reference_code,
            student_id=s.id,
            student_name=f"{s.first_name} {s.last_name}",
            grade_level=e.grade_level,
            status=e.status,
            payment_status=e.payment_status,
            net_amount_cents=e.net_amount_cents,
            amount_paid_cents=e.amount_paid_cents,
            balance_cents=e.balance_cents,
        )
        for e, s in await repository.list_guardian_enrollments(db, guardian_id)
    ]
    total_balance = sum(b.balance_cents for b in balances)
    return GuardianBillingSummary(
        guardian_id=guardian.id,
        enrollments=balances,
        total_net_amount_cents=sum(b.net_amount_cents for b in balances),
        total_amount_paid_cents=sum(b.amount_paid_cents for b in balances),
        total_balance_cents=total_balance,
        formatted_total_balance=format_cents(total_balance),
    )
