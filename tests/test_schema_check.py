from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.schema_check import ensure_tables


async def test_ensure_tables_creates_missing_then_noop() -> None:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    try:
        created = await ensure_tables(engine)
        assert created.index("school_years") < created.index("enrollment_periods") < created.index("enrollments")
        assert {"guardians", "students", "grade_level_fees", "payments", "audit_logs"} <= set(created)
        assert created.index("enrollments") < created.index("invoices") < created.index("invoice_items")
        assert await ensure_tables(engine) == []
    finally:
        await engine.dispose()
