"""The period status cron entry point."""

from contextlib import asynccontextmanager
from datetime import date, timedelta

from sqlalchemy import select

from app.core.models import EnrollmentPeriod
from app.scripts import update_enrollment_period_status as script


def _use_session(monkeypatch, session) -> None:
    @asynccontextmanager
    async def session_factory():
        yield session

    monkeypatch.setattr(script, "AsyncSessionLocal", session_factory)


async def test_dry_run_reports_without_saving(db_session, make_period, monkeypatch, capsys) -> None:
    today = date.today()
    expired = await make_period(start=today - timedelta(days=40), end=today - timedelta(days=1))
    _use_session(monkeypatch, db_session)

    await script.update_enrollment_period_status(dry_run=True, today=today)

    assert "[dry run] would have activated 0 period(s), closed 1 period(s)." in capsys.readouterr().out
    status = (await db_session.execute(select(EnrollmentPeriod.status).where(EnrollmentPeriod.id == expired.id))).scalar_one()
    assert status == "active"


async def test_run_closes_expired_periods(db_session, make_period, monkeypatch, capsys) -> None:
    today = date.today()
    expired = await make_period(start=today - timedelta(days=40), end=today - timedelta(days=1))
    _use_session(monkeypatch, db_session)

    await script.update_enrollment_period_status(today=today)

    assert "activated 0 period(s), closed 1 period(s)." in capsys.readouterr().out
    status = (await db_session.execute(select(EnrollmentPeriod.status).where(EnrollmentPeriod.id == expired.id))).scalar_one()
    assert status == "closed"
