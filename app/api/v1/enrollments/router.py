"""Enrollments router: apply, review (approve/reject/bulk), complete, withdraw, list, statistics."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor_id
from app.core.enums import EnrollmentStatus, GradeLevel
from app.core.schemas import Page
from app.db.session import get_db

from .schemas import (
    BulkApproveRequest,
    BulkApproveResponse,
    EligibilityResponse,
    EnrollmentCreate,
    EnrollmentFilters,
    EnrollmentReject,
    EnrollmentResponse,
    EnrollmentStatistics,
    EnrollmentWithdraw,
)
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def create_enrollment(
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    return await service.create_enrollment(db, payload)


@router.get("", response_model=Page[EnrollmentResponse])
async def list_enrollments(
    status_filter: Optional[EnrollmentStatus] = Query(None, alias="status"),
    school_year_id: Optional[UUID] = Query(None),
    grade_level: Optional[GradeLevel] = Query(None),
    student_id: Optional[UUID] = Query(None),
    guardian_id: Optional[UUID] = Query(None),
    created_from: Optional[date] = Query(None),
    created_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> Page[EnrollmentResponse]:
    filters = EnrollmentFilters(
        status=status_filter,
        school_year_id=school_year_id,
        grade_level=grade_level,
        student_id=student_id,
        guardian_id=guardian_id,
        created_from=created_from,
        created_to=created_to,
    )
    return await service.list_enrollments(db, filters, page=page, per_page=per_page)


@router.get("/eligibility", response_model=EligibilityResponse)
async def check_eligibility(
    student_id: UUID,
    school_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> EligibilityResponse:
    allowed = await service.can_enroll(db, student_id, school_year_id)
    return EligibilityResponse(student_id=student_id, school_year_id=school_year_id, can_enroll=allowed)


@router.post("/bulk-approve", response_model=BulkApproveResponse)
async def bulk_approve(
    payload: BulkApproveRequest,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> BulkApproveResponse:
    count = await service.bulk_approve(db, payload.enrollment_ids, approved_by=actor_id)
    return BulkApproveResponse(count=count)


@router.get("/statistics", response_model=EnrollmentStatistics)
async def get_statistics(
    school_year_id: Optional[UUID] = Query(None, description="Defaults to the active period's school year"),
    db: AsyncSession = Depends(get_db),
) -> EnrollmentStatistics:
    return await service.get_statistics(db, school_year_id)


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
async def get_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    return await service.get_enrollment(db, enrollment_id)


@router.post("/{enrollment_id}/approve", response_model=EnrollmentResponse)
async def approve_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentResponse:
    return await service.approve_enrollment(db, enrollment_id, approved_by=actor_id)


@router.post("/{enrollment_id}/reject", response_model=EnrollmentResponse)
async def reject_enrollment(
    enrollment_id: UUID,
    payload: EnrollmentReject,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentResponse:
    return await service.reject_enrollment(db, enrollment_id, payload.reason, rejected_by=actor_id)


@router.post("/{enrollment_id}/complete", response_model=EnrollmentResponse)
async def complete_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentResponse:
    return await service.complete_enrollment(db, enrollment_id, performed_by=actor_id)


@router.post("/{enrollment_id}/withdraw", response_model=EnrollmentResponse)
async def withdraw_enrollment(
    enrollment_id: UUID,
    payload: Optional[EnrollmentWithdraw] = None,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentResponse:
    reason = payload.reason if payload else None
    return await service.withdraw_enrollment(db, enrollment_id, performed_by=actor_id, reason=reason)
