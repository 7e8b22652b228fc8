"""Grade level fee schedule schemas. Amounts are integer minor units."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import GradeLevel


class GradeLevelFeeCreate(BaseModel):
    grade_level: GradeLevel
    enrollment_period_id: UUID
    tuition_fee_cents: int = Field(0, ge=0)
    miscellaneous_fee_cents: int = Field(0, ge=0)
    laboratory_fee_cents: int = Field(0, ge=0)
    registration_fee_cents: int = Field(0, ge=0)


class GradeLevelFeeUpdate(BaseModel):
    tuition_fee_cents: Optional[int] = Field(None, ge=0)
    miscellaneous_fee_cents: Optional[int] = Field(None, ge=0)
    laboratory_fee_cents: Optional[int] = Field(None, ge=0)
    registration_fee_cents: Optional[int] = Field(None, ge=0)


class GradeLevelFeeResponse(BaseModel):
    id: UUID
    grade_level: GradeLevel
    enrollment_period_id: UUID
    tuition_fee_cents: int
    miscellaneous_fee_cents: int
    laboratory_fee_cents: int
    registration_fee_cents: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
