"""Maps named service errors to HTTP responses. The service layer itself knows nothing about HTTP."""

import logging
from typing import Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.exceptions import ServiceError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: Dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "validation_failed": status.HTTP_400_BAD_REQUEST,
    "enrollment_closed": status.HTTP_409_CONFLICT,
    "new_students_not_accepted": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "returning_students_not_accepted": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "grade_level_regression": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "duplicate_enrollment": status.HTTP_409_CONFLICT,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "invalid_discount": status.HTTP_400_BAD_REQUEST,
    "invalid_payment_amount": status.HTTP_400_BAD_REQUEST,
    "overpayment_rejected": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def status_for(exc: ServiceError) -> int:
    return STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    code = status_for(exc)
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, code, exc.code, exc.message)
    return JSONResponse(status_code=code, content={"detail": exc.message, "code": exc.code})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
