"""
Enrollment: one student's application for a grade level in a school year.
Monetary fields are a snapshot taken at creation/discount time, in integer minor units.
Status and payment_status are independent; payment_status is only derived by the billing calculator.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from app.core.enums import EnrollmentStatus, PaymentPlanKind, PaymentStatus
from app.db.session import Base


_ACTIVE_STATUS_SQL = "status IN ('pending','enrolled')"


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        # Authoritative guard: at most one pending/enrolled application per student per school year.
        Index(
            "uq_enrollments_active_student_year",
            "student_id",
            "school_year_id",
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_SQL),
            sqlite_where=text(_ACTIVE_STATUS_SQL),
        ),
        CheckConstraint(
            "status IN ('pending','enrolled','rejected','completed','withdrawn')",
            name="chk_enrollment_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending','partial','paid')",
            name="chk_enrollment_payment_status",
        ),
        CheckConstraint("balance_cents >= 0", name="chk_enrollment_balance_non_negative"),
        CheckConstraint("net_amount_cents <= total_amount_cents", name="chk_enrollment_net_le_total"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_code = Column(String(30), nullable=False, unique=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    guardian_id = Column(Uuid, ForeignKey("guardians.id", ondelete="RESTRICT"), nullable=False, index=True)
    school_year_id = Column(Uuid, ForeignKey("school_years.id", ondelete="RESTRICT"), nullable=False)
    enrollment_period_id = Column(Uuid, ForeignKey("enrollment_periods.id", ondelete="RESTRICT"), nullable=False)
    grade_level = Column(String(20), nullable=False)
    quarter = Column(String(20), nullable=False)
    payment_plan = Column(String(20), nullable=False, default=PaymentPlanKind.full.value)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.pending.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)

    tuition_fee_cents = Column(BigInteger, nullable=False, default=0)
    miscellaneous_fee_cents = Column(BigInteger, nullable=False, default=0)
    laboratory_fee_cents = Column(BigInteger, nullable=False, default=0)
    total_amount_cents = Column(BigInteger, nullable=False, default=0)
    discount_type = Column(String(20), nullable=True)  # percentage, fixed
    discount_value = Column(Numeric(12, 2), nullable=True)
    discount_cents = Column(BigInteger, nullable=False, default=0)
    net_amount_cents = Column(BigInteger, nullable=False, default=0)
    amount_paid_cents = Column(BigInteger, nullable=False, default=0)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    payment_due_date = Column(Date, nullable=True)

    remarks = Column(Text, nullable=True)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", backref="enrollments")
    guardian = relationship("Guardian", backref="enrollments")
    school_year = relationship("SchoolYear")
    enrollment_period = relationship("EnrollmentPeriod", backref="enrollments")
