"""
Fee, payment-plan, payment, discount and invoice arithmetic. Pure functions: plain values in,
plain values out, no database access. All money is integer minor units; fractional
results are rounded half-up exactly once, at the point they become money.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional, Union

from dateutil.relativedelta import relativedelta

from app.core.currency import round_half_up
from app.core.enums import DiscountType, InvoiceStatus, PaymentPlanKind, PaymentStatus
from app.core.exceptions import InvalidDiscount, InvalidPaymentAmount
from app.core.schemas import FeeBreakdown

from .schemas import PaymentPlan, PaymentPlanInstallment


class PlanRule(NamedTuple):
    name: str
    discount: Decimal
    due_offsets: List[relativedelta]

    @property
    def installments(self) -> int:
        return len(self.due_offsets)


PAYMENT_PLAN_RULES: Dict[PaymentPlanKind, PlanRule] = {
    PaymentPlanKind.full: PlanRule(
        "Full Payment",
        Decimal("0.05"),
        [relativedelta(days=30)],
    ),
    PaymentPlanKind.semestral: PlanRule(
        "Semestral Payment",
        Decimal("0.03"),
        [relativedelta(days=30), relativedelta(months=6)],
    ),
    PaymentPlanKind.quarterly: PlanRule(
        "Quarterly Payment",
        Decimal("0"),
        [relativedelta(days=30), relativedelta(months=3), relativedelta(months=6), relativedelta(months=9)],
    ),
    PaymentPlanKind.monthly: PlanRule(
        "Monthly Payment",
        Decimal("0"),
        [relativedelta(months=m) for m in range(1, 11)],
    ),
}


class PaymentComputation(NamedTuple):
    amount_paid: int
    balance: int
    payment_status: PaymentStatus


class DiscountComputation(NamedTuple):
    discount: int
    net_amount: int
    balance: int
    payment_status: PaymentStatus


# --- Fees ---
def calculate_fees(fee_schedule: Optional[Any], discount_percent: Union[Decimal, int] = 0) -> FeeBreakdown:
    """
    Fee breakdown for a grade level fee schedule (any object exposing tuition_fee_cents,
    miscellaneous_fee_cents and laboratory_fee_cents). A missing schedule yields all zeros.
    """
    discount_percent = Decimal(str(discount_percent))
    if discount_percent < 0 or discount_percent > 100:
        raise InvalidDiscount(f"Discount percent must be between 0 and 100 (got {discount_percent})")
    if fee_schedule is None:
        return FeeBreakdown()
    tuition = int(fee_schedule.tuition_fee_cents or 0)
    miscellaneous = int(fee_schedule.miscellaneous_fee_cents or 0)
    laboratory = int(fee_schedule.laboratory_fee_cents or 0)
    total = tuition + miscellaneous + laboratory
    discount = round_half_up(Decimal(total) * discount_percent / 100)
    return FeeBreakdown(
        tuition=tuition,
        miscellaneous=miscellaneous,
        laboratory=laboratory,
        discount=discount,
        total=total - discount,
    )


# --- Payment plans ---
def resolve_plan_kind(plan_kind: Union[PaymentPlanKind, str, None]) -> PaymentPlanKind:
    """Unknown or empty plan names fall back to the full-payment plan."""
    try:
        return PaymentPlanKind(plan_kind)
    except ValueError:
        return PaymentPlanKind.full


def calculate_payment_plan(
    total_amount: int,
    plan_kind: Union[PaymentPlanKind, str, None],
    today: Optional[date] = None,
) -> PaymentPlan:
    """
    Installment schedule for a total. Installments are equal except the last, which absorbs
    the integer-division remainder so the schedule sums exactly to final_amount.
    """
    if total_amount < 0:
        raise InvalidPaymentAmount("Plan total cannot be negative")
    kind = resolve_plan_kind(plan_kind)
    rule = PAYMENT_PLAN_RULES[kind]
    today = today or date.today()

    final_amount = round_half_up(Decimal(total_amount) * (1 - rule.discount))
    base, remainder = divmod(final_amount, rule.installments)
    schedule = []
    for i, offset in enumerate(rule.due_offsets):
        amount = base + (remainder if i == rule.installments - 1 else 0)
        schedule.append(
            PaymentPlanInstallment(installment=i + 1, due_date=today + offset, amount=amount)
        )
    return PaymentPlan(
        plan=kind,
        name=rule.name,
        installments=rule.installments,
        discount=rule.discount,
        final_amount=final_amount,
        schedule=schedule,
    )


def get_payment_plans(total_amount: int, today: Optional[date] = None) -> List[PaymentPlan]:
    return [calculate_payment_plan(total_amount, kind, today) for kind in PaymentPlanKind]


# --- Payments ---
def derive_payment_status(net_amount: int, amount_paid: int) -> PaymentStatus:
    """Single source of truth for payment status. Nothing paid is always pending, even on a zero net amount."""
    if amount_paid <= 0:
        return PaymentStatus.pending
    if net_amount - amount_paid <= 0:
        return PaymentStatus.paid
    return PaymentStatus.partial


def compute_payment(net_amount: int, amount_paid: int, amount: int) -> PaymentComputation:
    """Apply a payment (negative for refunds) to the paid total; balance is clamped at zero."""
    new_paid = amount_paid + amount
    if new_paid < 0:
        raise InvalidPaymentAmount("Amount paid cannot become negative")
    return PaymentComputation(
        amount_paid=new_paid,
        balance=max(0, net_amount - new_paid),
        payment_status=derive_payment_status(net_amount, new_paid),
    )


# --- Discounts ---
def compute_discount(
    total_amount: int,
    amount_paid: int,
    discount_type: Union[DiscountType, str],
    value: Union[Decimal, int],
) -> DiscountComputation:
    """
    Replace the discount on a total. Percentages must be within 0..100; a fixed amount larger
    than the total is capped at the total, so discount never exceeds total_amount.
    """
    try:
        kind = DiscountType(discount_type)
    except ValueError:
        raise InvalidDiscount(f"Unknown discount type: {discount_type!r}")
    value = Decimal(str(value))
    if value < 0:
        raise InvalidDiscount("Discount value cannot be negative")
    if kind == DiscountType.percentage:
        if value > 100:
            raise InvalidDiscount(f"Discount percent must be between 0 and 100 (got {value})")
        discount = round_half_up(Decimal(total_amount) * value / 100)
    else:
        discount = min(round_half_up(value), total_amount)
    net_amount = total_amount - discount
    return DiscountComputation(
        discount=discount,
        net_amount=net_amount,
        balance=max(0, net_amount - amount_paid),
        payment_status=derive_payment_status(net_amount, amount_paid),
    )


# --- Late fees ---
def calculate_late_fee(
    balance: int,
    due_date: Optional[date],
    payment_status: Union[PaymentStatus, str],
    today: Optional[date] = None,
    grace_days: int = 30,
    rate_percent: int = 5,
) -> int:
    """Flat percentage of the outstanding balance once a due date is more than grace_days past."""
    if payment_status == PaymentStatus.paid or due_date is None or balance <= 0:
        return 0
    days_late = ((today or date.today()) - due_date).days
    if days_late <= grace_days:
        return 0
    return round_half_up(Decimal(balance) * rate_percent / 100)


# --- Invoices ---
class InvoiceLine(NamedTuple):
    description: str
    amount: int


def build_invoice_lines(enrollment: Any) -> List[InvoiceLine]:
    """
    Line items for an enrollment's fee snapshot: one line per non-zero fee, plus a negative
    discount line. The lines always sum to the enrollment's net amount.
    """
    grade = enrollment.grade_level
    lines = [
        InvoiceLine(f"Tuition Fee - {grade}", int(enrollment.tuition_fee_cents or 0)),
        InvoiceLine("Miscellaneous Fee", int(enrollment.miscellaneous_fee_cents or 0)),
        InvoiceLine("Laboratory Fee", int(enrollment.laboratory_fee_cents or 0)),
    ]
    lines = [line for line in lines if line.amount > 0]
    if enrollment.discount_cents:
        lines.append(InvoiceLine("Discount", -int(enrollment.discount_cents)))
    return lines


def derive_invoice_status(
    total_amount: int,
    paid_amount: int,
    due_date: Optional[date],
    today: Optional[date] = None,
) -> InvoiceStatus:
    """paid / partially_paid from the amount paid; an unpaid invoice past its due date is overdue."""
    if paid_amount > 0 and paid_amount >= total_amount:
        return InvoiceStatus.paid
    if paid_amount > 0:
        return InvoiceStatus.partially_paid
    if due_date is not None and due_date < (today or date.today()):
        return InvoiceStatus.overdue
    return InvoiceStatus.sent
