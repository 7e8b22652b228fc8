from enum import Enum
from typing import Dict, FrozenSet


class GradeLevel(str, Enum):
    KINDER = "Kinder"
    GRADE_1 = "Grade 1"
    GRADE_2 = "Grade 2"
    GRADE_3 = "Grade 3"
    GRADE_4 = "Grade 4"
    GRADE_5 = "Grade 5"
    GRADE_6 = "Grade 6"

    @property
    def order(self) -> int:
        return list(GradeLevel).index(self)

    def is_lower_than(self, other: "GradeLevel") -> bool:
        return self.order < other.order


class Quarter(str, Enum):
    FIRST = "First"
    SECOND = "Second"
    THIRD = "Third"
    FOURTH = "Fourth"


class EnrollmentStatus(str, Enum):
    pending = "pending"
    enrolled = "enrolled"
    rejected = "rejected"
    completed = "completed"
    withdrawn = "withdrawn"

    @property
    def is_terminal(self) -> bool:
        return not ENROLLMENT_TRANSITIONS[self]

    def can_transition_to(self, target: "EnrollmentStatus") -> bool:
        return target in ENROLLMENT_TRANSITIONS[self]


# Every status must have an entry; terminal states map to an empty set.
ENROLLMENT_TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.pending: frozenset({EnrollmentStatus.enrolled, EnrollmentStatus.rejected}),
    EnrollmentStatus.enrolled: frozenset({EnrollmentStatus.completed, EnrollmentStatus.withdrawn}),
    EnrollmentStatus.rejected: frozenset(),
    EnrollmentStatus.completed: frozenset(),
    EnrollmentStatus.withdrawn: frozenset(),
}

# Statuses that block a second application for the same school year.
ACTIVE_ENROLLMENT_STATUSES = (EnrollmentStatus.pending, EnrollmentStatus.enrolled)

# Statuses that make a student "returning" rather than new.
HISTORY_ENROLLMENT_STATUSES = (EnrollmentStatus.enrolled, EnrollmentStatus.completed)


class PaymentStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"


class EnrollmentPeriodStatus(str, Enum):
    upcoming = "upcoming"
    active = "active"
    closed = "closed"


class SchoolYearStatus(str, Enum):
    active = "active"
    closed = "closed"


class DiscountType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"


class PaymentPlanKind(str, Enum):
    full = "full"
    semestral = "semestral"
    quarterly = "quarterly"
    monthly = "monthly"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    CARD = "CARD"
    GCASH = "GCASH"
    CHECK = "CHECK"


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    partially_paid = "partially_paid"
    paid = "paid"
    cancelled = "cancelled"
    overdue = "overdue"


# Invoices still awaiting payment.
OPEN_INVOICE_STATUSES = (
    InvoiceStatus.draft,
    InvoiceStatus.sent,
    InvoiceStatus.partially_paid,
    InvoiceStatus.overdue,
)
