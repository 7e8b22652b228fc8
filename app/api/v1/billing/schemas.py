"""Billing schemas. All amounts are integer minor currency units (cents)."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.currency import to_cents
from app.core.enums import (
    DiscountType,
    EnrollmentStatus,
    GradeLevel,
    InvoiceStatus,
    PaymentMethod,
    PaymentPlanKind,
    PaymentStatus,
)

from app.api.v1.enrollments.schemas import EnrollmentResponse


# --- Calculator outputs ---
class PaymentPlanInstallment(BaseModel):
    installment: int
    due_date: date
    amount: int


class PaymentPlan(BaseModel):
    plan: PaymentPlanKind
    name: str
    installments: int
    discount: Decimal
    final_amount: int
    schedule: List[PaymentPlanInstallment]


# --- Requests ---
class FeeCalculationRequest(BaseModel):
    grade_level: GradeLevel
    enrollment_period_id: UUID
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)


class PaymentCreate(BaseModel):
    amount_cents: Optional[int] = Field(None, gt=0)
    amount: Optional[Decimal] = Field(None, gt=0, description="Major currency units; converted to amount_cents")
    method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None

    @model_validator(mode="after")
    def resolve_amount(self) -> "PaymentCreate":
        if self.amount is not None:
            if self.amount_cents is not None:
                raise ValueError("Send either amount or amount_cents, not both.")
            self.amount_cents = to_cents(self.amount)
            self.amount = None
        if self.amount_cents is None:
            raise ValueError("A payment amount is required.")
        return self


class RefundCreate(BaseModel):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)


class DiscountApply(BaseModel):
    discount_type: DiscountType
    value: Decimal = Field(..., ge=0, description="Percent for percentage discounts, minor units for fixed")

    @model_validator(mode="after")
    def check_percentage(self) -> "DiscountApply":
        if self.discount_type == DiscountType.percentage and self.value > 100:
            raise ValueError("A percentage discount cannot exceed 100.")
        return self


# --- Responses ---
class PaymentResponse(BaseModel):
    id: UUID
    enrollment_id: UUID
    amount_cents: int
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    refund_of_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    paid_at: datetime
    processed_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FormattedAmounts(BaseModel):
    tuition: str
    miscellaneous: str
    laboratory: str
    total: str
    discount: str
    net_amount: str
    amount_paid: str
    balance: str
    late_fee: str


class BillingDetailsResponse(BaseModel):
    enrollment_id: UUID
    reference_code: str
    payment_status: PaymentStatus
    payment_plan: PaymentPlanKind
    payment_due_date: Optional[date] = None
    total_amount_cents: int
    discount_cents: int
    net_amount_cents: int
    amount_paid_cents: int
    balance_cents: int
    late_fee_cents: int
    formatted: FormattedAmounts
    payment_plans: List[PaymentPlan]


class PaymentResult(BaseModel):
    payment: PaymentResponse
    enrollment: EnrollmentResponse


# --- Invoices ---
class InvoiceCreate(BaseModel):
    due_date: Optional[date] = Field(None, description="Defaults to the enrollment's payment due date, else 30 days out")


class InvoiceItemResponse(BaseModel):
    description: str
    quantity: int
    unit_price_cents: int
    amount_cents: int

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    enrollment_id: UUID
    invoice_date: date
    due_date: date
    status: InvoiceStatus
    total_amount_cents: int
    paid_amount_cents: int
    balance_cents: int
    items: List[InvoiceItemResponse]
    issued_by: Optional[UUID] = None
    created_at: datetime


# --- Guardian summary ---
class GuardianEnrollmentBalance(BaseModel):
    enrollment_id: UUID
    reference_code: str
    student_id: UUID
    student_name: str
    grade_level: GradeLevel
    status: EnrollmentStatus
    payment_status: PaymentStatus
    net_amount_cents: int
    amount_paid_cents: int
    balance_cents: int


class GuardianBillingSummary(BaseModel):
    guardian_id: UUID
    enrollments: List[GuardianEnrollmentBalance]
    total_net_amount_cents: int
    total_amount_paid_cents: int
    total_balance_cents: int
    formatted_total_balance: str
