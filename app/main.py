from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.v1.billing.router import router as billing_router
from app.api.v1.enrollment_periods.router import router as enrollment_periods_router
from app.api.v1.enrollments.router import router as enrollments_router
from app.api.v1.grade_level_fees.router import router as grade_level_fees_router
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Enrollment & Billing Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(enrollment_periods_router)
    app.include_router(grade_level_fees_router)
    app.include_router(enrollments_router)
    app.include_router(billing_router)

    return app


app = create_app()
