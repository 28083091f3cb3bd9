"""
Shared fixtures.

The environment is pointed at a throwaway SQLite database and temporary
upload/data directories before any application module is imported, since
settings and the engine are built at import time.
"""

import asyncio
import os
import tempfile

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="food-ordering-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["UPLOAD_DIRECTORY"] = os.path.join(_TMP_DIR, "uploads")
os.environ["DATA_DIRECTORY"] = os.path.join(_TMP_DIR, "data")
os.environ["REDIS_URL"] = "redis://localhost:6399/0"
os.environ["AUDIT_EXPORT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-signing-key"
os.environ["TOKEN_EXPIRY_MODE"] = "none"
os.environ["ORDER_TOTAL_POLICY"] = "verify"
os.environ["ENFORCE_FORWARD_TRANSITIONS"] = "true"
os.environ["ALL_ORDERS_REQUIRE_ADMIN"] = "false"


async def _recreate_tables() -> None:
    from food_ordering import models  # noqa: F401
    from food_ordering.database import Base, engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_db():
    """Every test starts from empty tables."""
    asyncio.run(_recreate_tables())
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db():
    """Session for service-level tests."""
    from food_ordering.database import async_session_maker, engine

    async with async_session_maker() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def client():
    """Test client with the application lifespan running."""
    from fastapi.testclient import TestClient
    from food_ordering.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def settings():
    from food_ordering.core.config import get_settings

    return get_settings()
