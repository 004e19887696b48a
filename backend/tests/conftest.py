"""
Widget API Backend: Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: AsyncMock session for pure service tests
    ├── db_engine:       aiosqlite engine on a per-test file, tables created
    ├── session_factory: sessionmaker bound to db_engine
    ├── db_session:      one real AsyncSession
    ├── token_factory:   mints HS256 tokens signed with the test key
    ├── auth_headers:    builds {"Authorization": "Bearer ..."} for a subject
    └── test_client:     HTTPX AsyncClient wired to the app and the test DB
"""

import base64
import os
import tempfile
import time
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any widget_api imports
TEST_JWT_SECRET = "d2lkZ2V0LWFwaS10ZXN0LXNpZ25pbmcta2V5LTMyYnl0ZXMh"
TEST_JWT_ISSUER = "supabase"

_test_dir = tempfile.mkdtemp(prefix="widget_api_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/app.db"
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["JWT_ISSUER"] = TEST_JWT_ISSUER
os.environ["JWT_LEEWAY_SECONDS"] = "0"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from widget_api.database import Base, engine, get_db_session  # noqa: E402
from widget_api.models.widget import Widget  # noqa: E402,F401  (registers the table)

TEST_SIGNING_KEY = base64.b64decode(TEST_JWT_SECRET)


def mint_token(
    sub: Any = "user-a",
    issuer: str = TEST_JWT_ISSUER,
    key: bytes = TEST_SIGNING_KEY,
    iat_offset: int = -10,
    exp_offset: int = 3600,
    drop: tuple = (),
    **extra: Any,
) -> str:
    """HS256 token with iat/exp relative to now; `drop` removes claims."""
    now = int(time.time())
    payload: Dict[str, Any] = {
        "sub": sub,
        "iss": issuer,
        "iat": now + iat_offset,
        "exp": now + exp_offset,
        "role": "authenticated",
        "aud": "authenticated",
    }
    payload.update(extra)
    for claim in drop:
        payload.pop(claim, None)
    return jwt.encode(payload, key, algorithm="HS256")


# ══════════════════════════════════════════════════════════════════════════
# Mocks
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = widget
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Real (SQLite) Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'widgets.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Authentication
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def token_factory():
    return mint_token


@pytest.fixture
def auth_headers():
    """auth_headers("user-b") → Authorization header for that subject."""

    def _headers(sub: str = "user-a", **kwargs: Any) -> Dict[str, str]:
        return {"Authorization": f"Bearer {mint_token(sub=sub, **kwargs)}"}

    return _headers


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the FastAPI app via ASGITransport.

    get_db_session is overridden so every request uses the per-test database.
    """
    from widget_api.main import app

    async def _override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    # /health uses the module-level engine; release its connections on this loop
    await engine.dispose()
