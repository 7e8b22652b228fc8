"""Payment: append-only record of funds applied to an enrollment and its open invoice. Refunds are negative rows linked by refund_of_id."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    method = Column(String(30), nullable=False)  # CASH, BANK, CARD, GCASH, CHECK
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    refund_of_id = Column(Uuid, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, index=True)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    processed_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    enrollment = relationship("Enrollment", backref="payments")
    refund_of = relationship("Payment", remote_side=[id], backref="refunds")
    invoice = relationship("Invoice", backref="payments")
