import asyncio

import pytest
import pytest_asyncio

import db


async def _fresh_schema():
    await db.dispose_engine()
    await db.create_all()


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch):
    """Empty SQLite database for one async test."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await _fresh_schema()
    yield
    await db.dispose_engine()


@pytest.fixture
def sync_database(tmp_path, monkeypatch):
    """Same as ``database`` but usable from sync tests (TestClient runs its own loop)."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/test.db")
    asyncio.run(_fresh_schema())
    asyncio.run(db.dispose_engine())
    yield
    asyncio.run(db.dispose_engine())
