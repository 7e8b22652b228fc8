"""
Enrollment period: the registration window for a school year.
Only one period is active at a time; open = active and today within [start_date, end_date].
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import EnrollmentPeriodStatus
from app.db.session import Base


class EnrollmentPeriod(Base):
    __tablename__ = "enrollment_periods"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_enrollment_period_dates"),
        CheckConstraint(
            "status IN ('upcoming','active','closed')",
            name="chk_enrollment_period_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_year_id = Column(Uuid, ForeignKey("school_years.id", ondelete="RESTRICT"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    early_registration_deadline = Column(Date, nullable=True)
    regular_registration_deadline = Column(Date, nullable=False)
    late_registration_deadline = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=EnrollmentPeriodStatus.upcoming.value)
    description = Column(Text, nullable=True)
    allow_new_students = Column(Boolean, nullable=False, default=True)
    allow_returning_students = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_year = relationship("SchoolYear", backref="enrollment_periods")

    def is_open_on(self, today: date) -> bool:
        return (
            self.status == EnrollmentPeriodStatus.active.value
            and self.start_date <= today <= self.end_date
        )
