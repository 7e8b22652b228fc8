"""Billing router: fee calculation, payment plans, payments, refunds, discounts, invoices, guardian summaries."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor_id
from app.api.v1.enrollments.schemas import EnrollmentResponse
from app.core.enums import PaymentPlanKind
from app.core.schemas import FeeBreakdown
from app.db.session import get_db

from .schemas import (
    BillingDetailsResponse,
    DiscountApply,
    FeeCalculationRequest,
    GuardianBillingSummary,
    InvoiceCreate,
    InvoiceResponse,
    PaymentCreate,
    PaymentPlan,
    PaymentResponse,
    PaymentResult,
    RefundCreate,
)
from . import calculator, service

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.post("/fees/calculate", response_model=FeeBreakdown)
async def calculate_fees(
    payload: FeeCalculationRequest,
    db: AsyncSession = Depends(get_db),
) -> FeeBreakdown:
    return await service.calculate_fees(
        db, payload.grade_level, payload.enrollment_period_id, payload.discount_percent
    )


@router.get("/payment-plans", response_model=List[PaymentPlan])
async def list_payment_plans(
    total_cents: int = Query(..., ge=0),
    plan: Optional[PaymentPlanKind] = Query(None),
    start_date: Optional[date] = Query(None, description="Reference date for due dates; defaults to today"),
) -> List[PaymentPlan]:
    if plan is not None:
        return [calculator.calculate_payment_plan(total_cents, plan, start_date)]
    return calculator.get_payment_plans(total_cents, start_date)


@router.get("/enrollments/{enrollment_id}", response_model=BillingDetailsResponse)
async def get_billing_details(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> BillingDetailsResponse:
    return await service.get_billing_details(db, enrollment_id)


@router.get("/enrollments/{enrollment_id}/payments", response_model=List[PaymentResponse])
async def list_payments(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    return await service.list_payments(db, enrollment_id)


@router.post(
    "/enrollments/{enrollment_id}/payments",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    enrollment_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> PaymentResult:
    return await service.record_payment(db, enrollment_id, payload, processed_by=actor_id)


@router.post(
    "/payments/{payment_id}/refund",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
)
async def refund_payment(
    payment_id: UUID,
    payload: RefundCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> PaymentResult:
    return await service.refund_payment(
        db, payment_id, payload.amount_cents, payload.reason, processed_by=actor_id
    )


@router.post("/enrollments/{enrollment_id}/discount", response_model=EnrollmentResponse)
async def apply_discount(
    enrollment_id: UUID,
    payload: DiscountApply,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentResponse:
    return await service.apply_discount(
        db, enrollment_id, payload.discount_type, payload.value, applied_by=actor_id
    )


@router.post(
    "/enrollments/{enrollment_id}/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_invoice(
    enrollment_id: UUID,
    payload: Optional[InvoiceCreate] = None,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> InvoiceResponse:
    due_date = payload.due_date if payload else None
    return await service.generate_invoice(db, enrollment_id, due_date=due_date, issued_by=actor_id)


@router.get("/enrollments/{enrollment_id}/invoices", response_model=List[InvoiceResponse])
async def list_invoices(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[InvoiceResponse]:
    return await service.list_invoices(db, enrollment_id)


@router.get("/invoices/overdue", response_model=List[InvoiceResponse])
async def list_overdue_invoices(
    db: AsyncSession = Depends(get_db),
) -> List[InvoiceResponse]:
    return await service.list_overdue_invoices(db)


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    return await service.get_invoice(db, invoice_id)


@router.get("/guardians/{guardian_id}/summary", response_model=GuardianBillingSummary)
async def get_guardian_billing_summary(
    guardian_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> GuardianBillingSummary:
    return await service.get_guardian_billing_summary(db, guardian_id)
