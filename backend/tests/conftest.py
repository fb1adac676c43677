"""
Travel Log API — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Tests run against a throwaway SQLite database (aiosqlite) whose tables
       are recreated for every test, and talk to the app through HTTPX's
       ASGI transport, so no server or PostgreSQL instance is needed.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database_tables: empty tables, engine disposed afterwards
    ├── db_session: session for inspecting the database directly
    ├── client:     HTTPX AsyncClient bound to the FastAPI app
    └── api:        ApiHelper wrapping the client (register, log in, create)
"""

import os
import tempfile

# Override settings for testing BEFORE any travellog imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="travellog_test_"), "test.db"
)
os.environ["SECRET"] = "test-secret-not-for-production"
os.environ["BCRYPT_COST"] = "4"  # Fastest bcrypt cost; tests hash many passwords
os.environ["BASE_URL"] = "http://localhost:3000"
os.environ["LOG_LEVEL"] = "warn"

from typing import Any, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from travellog import database  # noqa: E402
from travellog.database import Base  # noqa: E402
from travellog.services.stats_service import stats_broadcaster  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database_tables():
    """
    Provides empty tables for one test.

    The engine is disposed afterwards: aiosqlite connections belong to the
    event loop of the test that opened them.
    """
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    await database.engine.dispose()


@pytest_asyncio.fixture
async def db_session(database_tables):
    """A session outside of any request, for inspecting the database directly."""
    async with database.async_session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def client(database_tables):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_api_index(client):
            response = await client.get("/api")
            assert response.status_code == 200
    """
    from travellog.main import app

    stats_broadcaster.clients.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    stats_broadcaster.clients.clear()


class ApiHelper:
    """Shortcuts for the requests most tests need as a setup step."""

    def __init__(self, client: AsyncClient):
        self.client = client

    @staticmethod
    def auth(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def create_user(self, name: str = "jdoe", password: str = "letmein") -> Dict[str, Any]:
        response = await self.client.post("/api/users", json={"name": name, "password": password})
        assert response.status_code == 201, response.text
        return response.json()

    async def login(self, name: str, password: str = "letmein") -> str:
        response = await self.client.post("/api/auth", json={"username": name, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    async def register(self, name: str = "jdoe", password: str = "letmein") -> "tuple[Dict[str, Any], str]":
        """Creates a user and returns it along with a token to act as them."""
        user = await self.create_user(name, password)
        return user, await self.login(name, password)

    async def create_trip(
        self,
        token: str,
        title: str = "Road trip",
        description: str = "Driving along the coast",
    ) -> Dict[str, Any]:
        response = await self.client.post(
            "/api/trips",
            json={"title": title, "description": description},
            headers=self.auth(token),
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def create_place(
        self,
        token: str,
        trip: Dict[str, Any],
        name: str = "Lighthouse",
        coordinates: Optional[list] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        body = {
            "name": name,
            "description": "A nice view over the ocean",
            "location": {"type": "Point", "coordinates": coordinates or [6.1432, 46.2044]},
            "tripId": trip["id"],
            **extra,
        }
        response = await self.client.post("/api/places", json=body, headers=self.auth(token))
        assert response.status_code == 201, response.text
        return response.json()


@pytest.fixture
def api(client) -> ApiHelper:
    return ApiHelper(client)
