"""
Ensure the fee ledger tables exist. Safe to run repeatedly.

Usage:
  python -m app.db.schema_check
"""

import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (registers tables on Base.metadata)
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


REQUIRED_TABLES: List[str] = [
    "fee_records",
    "fee_installments",
    "payment_ledger_entries",
    "late_fee_policies",
    "fee_audit_logs",
]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create any missing ledger tables; return the names that were created."""
    async with db_engine.begin() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
        missing = [t for t in REQUIRED_TABLES if t not in existing]
        if missing:
            await conn.run_sync(
                Base.metadata.create_all,
                tables=[Base.metadata.tables[t] for t in missing],
            )

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All fee ledger tables already exist in the database.")
    return missing


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
