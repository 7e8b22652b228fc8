import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, String, Uuid

from app.core.enums import SchoolYearStatus
from app.db.session import Base


class SchoolYear(Base):
    """A school year, e.g. "2026-2027". Enrollments and periods belong to exactly one."""

    __tablename__ = "school_years"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=SchoolYearStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
