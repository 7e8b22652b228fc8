"""Enrollment period and school year schemas."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import EnrollmentPeriodStatus, SchoolYearStatus


class SchoolYearCreate(BaseModel):
    name: str = Field(..., max_length=50, description="e.g. 2026-2027")
    start_date: date
    end_date: date


class SchoolYearResponse(BaseModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    status: SchoolYearStatus
    created_at: datetime

    class Config:
        from_attributes = True


class EnrollmentPeriodCreate(BaseModel):
    school_year_id: UUID
    start_date: date
    end_date: date
    early_registration_deadline: Optional[date] = None
    regular_registration_deadline: date
    late_registration_deadline: Optional[date] = None
    description: Optional[str] = None
    allow_new_students: bool = True
    allow_returning_students: bool = True

    @model_validator(mode="after")
    def check_dates(self) -> "EnrollmentPeriodCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date.")
        if self.regular_registration_deadline < self.start_date:
            raise ValueError("Registration deadline must be within period dates.")
        return self


class EnrollmentPeriodResponse(BaseModel):
    id: UUID
    school_year_id: UUID
    start_date: date
    end_date: date
    early_registration_deadline: Optional[date] = None
    regular_registration_deadline: date
    late_registration_deadline: Optional[date] = None
    status: EnrollmentPeriodStatus
    description: Optional[str] = None
    allow_new_students: bool
    allow_returning_students: bool
    is_open: bool = False
    days_remaining: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PeriodStatusSyncResponse(BaseModel):
    activated: int
    closed: int
    dry_run: bool
