"""
Shared fixtures for API tests.

Environment overrides must be set before any orgauth import: settings,
the engine and the limiter are built at import time.
"""

from __future__ import annotations

import os

os.environ.setdefault("ORGAUTH_ENVIRONMENT", "test")
os.environ.setdefault("ORGAUTH_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ORGAUTH_CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("ORGAUTH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("ORGAUTH_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ORGAUTH_LOG_LEVEL", "warning")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import orgauth.models  # noqa: F401
from orgauth.core.database import enable_sqlite_foreign_keys, get_session
from orgauth.core.limiter import limiter
from orgauth.main import app


# ---------------------------------------------------------------------------
# Database: in-memory SQLite shared through a single connection
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(
    client: AsyncClient,
    email: str,
    password: str = "secret1",
    name: str = "Test User",
) -> tuple[str, dict]:
    """Register a user through the API. Returns (token, user)."""
    resp = await client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    return data["token"], data["user"]


async def create_org(client: AsyncClient, token: str, name: str) -> dict:
    resp = await client.post("/organizations", json={"name": name}, headers=bearer(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["organization"]


async def add_member(
    client: AsyncClient, token: str, org_id: str, email: str, role: str | None = None
) -> dict:
    body = {"email": email}
    if role:
        body["role"] = role
    resp = await client.post(f"/organizations/{org_id}/members", json=body, headers=bearer(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["membership"]
