"""Enrollment request/response schemas. Amounts are integer minor units."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import (
    DiscountType,
    EnrollmentStatus,
    GradeLevel,
    PaymentPlanKind,
    PaymentStatus,
    Quarter,
)
from app.core.schemas import FeeBreakdown


class EnrollmentCreate(BaseModel):
    student_id: UUID
    guardian_id: UUID
    grade_level: GradeLevel
    quarter: Quarter = Quarter.FIRST
    payment_plan: PaymentPlanKind = PaymentPlanKind.full
    school_year_id: Optional[UUID] = Field(
        None, description="Ignored; the active enrollment period decides the school year"
    )


class EnrollmentReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class EnrollmentWithdraw(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BulkApproveRequest(BaseModel):
    enrollment_ids: List[UUID] = Field(..., min_length=1)


class BulkApproveResponse(BaseModel):
    count: int


class EligibilityResponse(BaseModel):
    student_id: UUID
    school_year_id: UUID
    can_enroll: bool


class EnrollmentFilters(BaseModel):
    status: Optional[EnrollmentStatus] = None
    school_year_id: Optional[UUID] = None
    grade_level: Optional[GradeLevel] = None
    student_id: Optional[UUID] = None
    guardian_id: Optional[UUID] = None
    created_from: Optional[date] = None
    created_to: Optional[date] = None


class EnrollmentResponse(BaseModel):
    id: UUID
    reference_code: str
    student_id: UUID
    guardian_id: UUID
    school_year_id: UUID
    enrollment_period_id: UUID
    grade_level: GradeLevel
    quarter: Quarter
    payment_plan: PaymentPlanKind
    status: EnrollmentStatus
    payment_status: PaymentStatus
    fees: FeeBreakdown
    total_amount_cents: int
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    discount_cents: int
    net_amount_cents: int
    amount_paid_cents: int
    balance_cents: int
    payment_due_date: Optional[date] = None
    remarks: Optional[str] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EnrollmentStatistics(BaseModel):
    """Counts per status and payment status for one school year, plus billed/collected totals."""

    school_year_id: UUID
    total: int
    by_status: Dict[EnrollmentStatus, int]
    by_payment_status: Dict[PaymentStatus, int]
    total_billed_cents: int
    total_collected_cents: int
    total_outstanding_cents: int
