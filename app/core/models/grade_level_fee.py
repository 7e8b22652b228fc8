"""Grade level fee schedule per enrollment period. Amounts are integer minor units."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import relationship

from app.db.session import Base


class GradeLevelFee(Base):
    """At most one active row per (grade_level, enrollment_period_id)."""

    __tablename__ = "grade_level_fees"
    __table_args__ = (
        Index(
            "uq_grade_level_fee_active_grade_period",
            "grade_level",
            "enrollment_period_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint(
            "tuition_fee_cents >= 0 AND miscellaneous_fee_cents >= 0"
            " AND laboratory_fee_cents >= 0 AND registration_fee_cents >= 0",
            name="chk_grade_level_fee_non_negative",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    grade_level = Column(String(20), nullable=False)
    enrollment_period_id = Column(
        Uuid,
        ForeignKey("enrollment_periods.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    tuition_fee_cents = Column(BigInteger, nullable=False, default=0)
    miscellaneous_fee_cents = Column(BigInteger, nullable=False, default=0)
    laboratory_fee_cents = Column(BigInteger, nullable=False, default=0)
    registration_fee_cents = Column(BigInteger, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    enrollment_period = relationship("EnrollmentPeriod")
