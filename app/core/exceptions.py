"""
Named service-layer errors. Each carries a human message and a stable code;
the HTTP boundary maps codes to status codes (app/api/errors.py).
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "service_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    code = "not_found"


class Conflict(ServiceError):
    code = "conflict"


class ValidationFailed(ServiceError):
    code = "validation_failed"


# --- Enrollment eligibility ---
class EnrollmentClosed(ServiceError):
    code = "enrollment_closed"


class NewStudentsNotAccepted(ServiceError):
    code = "new_students_not_accepted"


class ReturningStudentsNotAccepted(ServiceError):
    code = "returning_students_not_accepted"


class GradeLevelRegression(ServiceError):
    code = "grade_level_regression"


class DuplicateEnrollment(ServiceError):
    code = "duplicate_enrollment"


class InvalidTransition(ServiceError):
    code = "invalid_transition"


# --- Billing ---
class InvalidDiscount(ServiceError):
    code = "invalid_discount"


class InvalidPaymentAmount(ServiceError):
    code = "invalid_payment_amount"


class OverpaymentRejected(ServiceError):
    code = "overpayment_rejected"
