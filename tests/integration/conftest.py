from __future__ import annotations

import os

import pytest
from sqlalchemy import text

from boostify.core.integration_db_safety import assert_safe_integration_db
from boostify.db.session import engine

TRUNCATE_TABLES = (
    "messages",
    "chats",
    "coupon_usages",
    "coupons",
    "balance_transactions",
    "payment_transactions",
    "orders",
    "reconciliation_runs",
    "users",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL is not set; integration tests need a PostgreSQL test database")
    assert_safe_integration_db(str(engine.url))


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # asyncpg connections are bound to the loop that opened them.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
