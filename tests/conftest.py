import os
from datetime import date, timedelta
from typing import AsyncGenerator

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.enums import EnrollmentPeriodStatus, EnrollmentStatus, GradeLevel, PaymentStatus, Quarter
from app.core.models import Enrollment, EnrollmentPeriod, GradeLevelFee, Guardian, SchoolYear, Student
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; one shared connection so every session sees the same tables."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ----- Records -----

@pytest.fixture()
async def school_year(db_session: AsyncSession) -> SchoolYear:
    today = date.today()
    sy = SchoolYear(
        name=f"{today.year}-{today.year + 1}",
        start_date=today - timedelta(days=60),
        end_date=today + timedelta(days=300),
    )
    db_session.add(sy)
    await db_session.commit()
    return sy


@pytest.fixture()
def make_period(db_session: AsyncSession, school_year: SchoolYear):
    async def _make(
        status: EnrollmentPeriodStatus = EnrollmentPeriodStatus.active,
        start: date = None,
        end: date = None,
        allow_new_students: bool = True,
        allow_returning_students: bool = True,
    ) -> EnrollmentPeriod:
        today = date.today()
        start = start or today - timedelta(days=10)
        end = end or today + timedelta(days=30)
        period = EnrollmentPeriod(
            school_year_id=school_year.id,
            start_date=start,
            end_date=end,
            regular_registration_deadline=end,
            status=status.value,
            allow_new_students=allow_new_students,
            allow_returning_students=allow_returning_students,
        )
        db_session.add(period)
        await db_session.commit()
        return period

    return _make


@pytest.fixture()
async def open_period(make_period) -> EnrollmentPeriod:
    return await make_period()


@pytest.fixture()
async def grade_fees(db_session: AsyncSession, open_period: EnrollmentPeriod) -> dict:
    """Grade 1-3 fee schedules for the open period: Grade 1 is 20,000.00 tuition + 5,000.00 miscellaneous."""
    fees = {
        GradeLevel.GRADE_1: GradeLevelFee(
            grade_level=GradeLevel.GRADE_1.value,
            enrollment_period_id=open_period.id,
            tuition_fee_cents=2_000_000,
            miscellaneous_fee_cents=500_000,
            laboratory_fee_cents=0,
        ),
        GradeLevel.GRADE_2: GradeLevelFee(
            grade_level=GradeLevel.GRADE_2.value,
            enrollment_period_id=open_period.id,
            tuition_fee_cents=2_200_000,
            miscellaneous_fee_cents=500_000,
            laboratory_fee_cents=100_000,
        ),
        GradeLevel.GRADE_3: GradeLevelFee(
            grade_level=GradeLevel.GRADE_3.value,
            enrollment_period_id=open_period.id,
            tuition_fee_cents=2_400_000,
            miscellaneous_fee_cents=500_000,
            laboratory_fee_cents=150_075,
        ),
    }
    db_session.add_all(fees.values())
    await db_session.commit()
    return fees


@pytest.fixture()
async def guardian(db_session: AsyncSession) -> Guardian:
    g = Guardian(full_name="Maria Santos", email="maria@example.com", mobile="+639171234567")
    db_session.add(g)
    await db_session.commit()
    return g


@pytest.fixture()
def make_student(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make(first_name: str = "Juan", last_name: str = "Santos") -> Student:
        counter["n"] += 1
        s = Student(student_number=f"S-{counter['n']:04d}", first_name=first_name, last_name=last_name)
        db_session.add(s)
        await db_session.commit()
        return s

    return _make


@pytest.fixture()
async def student(make_student) -> Student:
    return await make_student()


@pytest.fixture()
def make_enrollment(db_session: AsyncSession, guardian: Guardian):
    """Insert an enrollment row directly, bypassing the lifecycle checks (for history and fixtures)."""
    counter = {"n": 0}

    async def _make(
        student: Student,
        period: EnrollmentPeriod,
        grade_level: GradeLevel = GradeLevel.GRADE_1,
        status: EnrollmentStatus = EnrollmentStatus.pending,
        net_amount_cents: int = 2_500_000,
        amount_paid_cents: int = 0,
        school_year_id=None,
    ) -> Enrollment:
        counter["n"] += 1
        e = Enrollment(
            reference_code=f"TST-{counter['n']:05d}",
            student_id=student.id,
            guardian_id=guardian.id,
            school_year_id=school_year_id or period.school_year_id,
            enrollment_period_id=period.id,
            grade_level=grade_level.value,
            quarter=Quarter.FIRST.value,
            status=status.value,
            payment_status=PaymentStatus.pending.value if amount_paid_cents == 0 else PaymentStatus.partial.value,
            tuition_fee_cents=net_amount_cents,
            total_amount_cents=net_amount_cents,
            net_amount_cents=net_amount_cents,
            amount_paid_cents=amount_paid_cents,
            balance_cents=max(0, net_amount_cents - amount_paid_cents),
        )
        db_session.add(e)
        await db_session.commit()
        return e

    return _make
