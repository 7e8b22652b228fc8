"""Invoice issued from an enrollment's fee snapshot, with one item per charge (discounts are negative items)."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import InvoiceStatus
from app.db.session import Base


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft','sent','partially_paid','paid','cancelled','overdue')",
            name="chk_invoice_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(30), nullable=False, unique=True)
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id", ondelete="RESTRICT"), nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False, default=0)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=InvoiceStatus.sent.value)
    issued_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    enrollment = relationship("Enrollment", backref="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(BigInteger, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
