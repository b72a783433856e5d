"""
Pytest configuration and shared fixtures.

The environment is set before anything under app/ is imported: the engine
in app.core.database is built from DATABASE_URL at import time.
"""

import asyncio
import os

import pytest

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["SIGNWELL_API_KEY"] = ""
os.environ["SIGNWELL_WEBHOOK_SECRET"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["SPOTIFY_CLIENT_ID"] = ""
os.environ["SPOTIFY_CLIENT_SECRET"] = ""

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


@pytest.fixture()
def run_db():
    """
    Run an async scenario against a fresh in-memory database.

    The scenario receives a session factory; engine, tables and event loop
    live only for the duration of the call.
    """

    def runner(scenario):
        async def main():
            engine = create_async_engine(
                "sqlite+aiosqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            session_maker = async_sessionmaker(engine, expire_on_commit=False)
            try:
                return await scenario(session_maker)
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner


@pytest.fixture()
def client():
    """TestClient with a fresh database (tables created in the app lifespan)."""
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_headers():
    return dict(ADMIN_HEADERS)
