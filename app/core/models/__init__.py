from app.core.models.school_year import SchoolYear
from app.core.models.enrollment_period import EnrollmentPeriod
from app.core.models.guardian import Guardian
from app.core.models.student import Student
from app.core.models.grade_level_fee import GradeLevelFee
from app.core.models.enrollment import Enrollment
from app.core.models.invoice import Invoice, InvoiceItem
from app.core.models.payment import Payment
from app.core.models.audit_log import AuditLog

__all__ = [
    "SchoolYear",
    "EnrollmentPeriod",
    "Guardian",
    "Student",
    "GradeLevelFee",
    "Enrollment",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "AuditLog",
]
