"""School years and enrollment periods router."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor_id
from app.db.session import get_db

from .schemas import (
    EnrollmentPeriodCreate,
    EnrollmentPeriodResponse,
    PeriodStatusSyncResponse,
    SchoolYearCreate,
    SchoolYearResponse,
)
from . import service

router = APIRouter(prefix="/api/v1", tags=["enrollment-periods"])


@router.post("/school-years", response_model=SchoolYearResponse, status_code=status.HTTP_201_CREATED)
async def create_school_year(
    payload: SchoolYearCreate,
    db: AsyncSession = Depends(get_db),
) -> SchoolYearResponse:
    return await service.create_school_year(db, payload)


@router.get("/school-years", response_model=List[SchoolYearResponse])
async def list_school_years(db: AsyncSession = Depends(get_db)) -> List[SchoolYearResponse]:
    return await service.list_school_years(db)


@router.post("/enrollment-periods", response_model=EnrollmentPeriodResponse, status_code=status.HTTP_201_CREATED)
async def create_period(
    payload: EnrollmentPeriodCreate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentPeriodResponse:
    return await service.create_period(db, payload)


@router.get("/enrollment-periods", response_model=List[EnrollmentPeriodResponse])
async def list_periods(
    school_year_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[EnrollmentPeriodResponse]:
    return await service.list_periods(db, school_year_id)


@router.get("/enrollment-periods/active", response_model=EnrollmentPeriodResponse)
async def get_active_period(db: AsyncSession = Depends(get_db)) -> EnrollmentPeriodResponse:
    period = await service.get_active_period(db)
    if not period:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active enrollment period")
    return service.period_to_response(period)


@router.post("/enrollment-periods/sync", response_model=PeriodStatusSyncResponse)
async def sync_period_statuses(
    dry_run: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> PeriodStatusSyncResponse:
    activated, closed = await service.sync_period_statuses(db, dry_run=dry_run)
    return PeriodStatusSyncResponse(activated=activated, closed=closed, dry_run=dry_run)


@router.post("/enrollment-periods/{period_id}/activate", response_model=EnrollmentPeriodResponse)
async def activate_period(
    period_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentPeriodResponse:
    return await service.activate_period(db, period_id, performed_by=actor_id)


@router.post("/enrollment-periods/{period_id}/close", response_model=EnrollmentPeriodResponse)
async def close_period(
    period_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> EnrollmentPeriodResponse:
    return await service.close_period(db, period_id, performed_by=actor_id)
