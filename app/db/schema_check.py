"""
Create any missing enrollment/billing tables (and their indexes) on the configured database.

Idempotent: existing tables are left untouched.
Usage: python -m app.db.schema_check
"""

import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Import all models so every table is registered on Base.metadata
import app.core.models  # noqa: F401
from app.db.session import Base, engine


def _missing_tables(sync_conn) -> List[str]:
    existing = set(inspect(sync_conn).get_table_names())
    return [t.name for t in Base.metadata.sorted_tables if t.name not in existing]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create missing tables in dependency order. Returns the names of the tables created."""
    async with db_engine.begin() as conn:
        missing = await conn.run_sync(_missing_tables)
        if missing:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    return missing


async def main() -> None:
    missing = await ensure_tables(engine)
    if missing:
        print("Created missing tables: " + ", ".join(missing))
    else:
        print("All tables present.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
