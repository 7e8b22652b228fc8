"""Grade level fee schedules router."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor_id
from app.db.session import get_db

from .schemas import GradeLevelFeeCreate, GradeLevelFeeResponse, GradeLevelFeeUpdate
from . import service

router = APIRouter(prefix="/api/v1/grade-level-fees", tags=["grade-level-fees"])


@router.post("", response_model=GradeLevelFeeResponse, status_code=status.HTTP_201_CREATED)
async def create_grade_level_fee(
    payload: GradeLevelFeeCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> GradeLevelFeeResponse:
    return await service.create_grade_level_fee(db, payload, changed_by=actor_id)


@router.get("", response_model=List[GradeLevelFeeResponse])
async def list_grade_level_fees(
    enrollment_period_id: UUID,
    active_only: bool = Query(True, description="Return only active schedules by default"),
    db: AsyncSession = Depends(get_db),
) -> List[GradeLevelFeeResponse]:
    return await service.list_grade_level_fees(db, enrollment_period_id, active_only=active_only)


@router.patch("/{fee_id}", response_model=GradeLevelFeeResponse)
async def update_grade_level_fee(
    fee_id: UUID,
    payload: GradeLevelFeeUpdate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> GradeLevelFeeResponse:
    return await service.update_grade_level_fee(db, fee_id, payload, changed_by=actor_id)


@router.post("/{fee_id}/deactivate", response_model=GradeLevelFeeResponse)
async def deactivate_grade_level_fee(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> GradeLevelFeeResponse:
    return await service.deactivate_grade_level_fee(db, fee_id, changed_by=actor_id)
