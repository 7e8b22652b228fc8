"""Append-only audit trail for enrollment and billing state changes."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, Text, Uuid

from app.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(50), nullable=False)  # enrollment, payment, enrollment_period, grade_level_fee
    entity_id = Column(Uuid, nullable=False, index=True)
    action = Column(String(50), nullable=False)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    performed_by = Column(Uuid, nullable=True)
    remarks = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
