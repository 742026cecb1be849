"""
AllerScan Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment is set BEFORE any allerscan import so the settings
       singleton, the engine and the Gemini singleton all see test values.

Fixture Hierarchy (all function-scoped):
    ├── db_session:   AsyncSession on a fresh in-memory SQLite database
    ├── user:         A registered user in that database
    ├── auth_headers: X-User-Email header for `user`
    ├── test_client:  HTTPX AsyncClient with get_db_session overridden
    ├── mock_gemini:  AsyncMocks on the GeminiService singleton's calls
    ├── make_member:  factory for duck-typed members (pure function tests)
    └── png_bytes / jpeg_bytes: real images generated with Pillow
"""

import os

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (must run before allerscan is imported)
# ══════════════════════════════════════════════════════════════════════════

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
# One attempt: failure tests must not sleep through backoff
os.environ["RETRY_MAX_ATTEMPTS"] = "1"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

import io  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import allerscan.models  # noqa: E402,F401
from allerscan.database import Base, get_db_session  # noqa: E402
from allerscan.models.user import User  # noqa: E402
from allerscan.services.gemini_service import gemini_service  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_session():
    """
    A session on a brand-new in-memory database with every table created.

    StaticPool keeps the single in-memory connection alive for the whole
    test, so schema and data are visible to every statement.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def user(db_session):
    account = User(email="parent@example.com", name="Pat Parent")
    db_session.add(account)
    await db_session.flush()
    return account


@pytest.fixture
def auth_headers(user):
    return {"X-User-Email": user.email}


@pytest_asyncio.fixture
async def test_client(db_session):
    """
    HTTPX AsyncClient talking to the app in-process.

    Every request shares the test's db_session, so data created through the
    API is visible to assertions made directly on the session.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from allerscan.main import app

    async def override_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Gemini Mocks
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_gemini():
    """
    Replaces the network-facing methods of the shared GeminiService.

    Usage:
        mock_gemini.analyze_ingredients.return_value = {...}
        mock_gemini.suggest_meals.return_value = [...]
    """
    with patch.object(gemini_service, "analyze_ingredients", new_callable=AsyncMock) as analyze, \
            patch.object(gemini_service, "suggest_meals", new_callable=AsyncMock) as meals, \
            patch.object(gemini_service, "health_check", new_callable=AsyncMock) as health:
        health.return_value = True
        yield SimpleNamespace(
            analyze_ingredients=analyze,
            suggest_meals=meals,
            health_check=health,
        )


@pytest.fixture
def ai_reply():
    """A well-formed analysis reply, camelCase as the model returns it."""
    return {
        "isProblematic": True,
        "detectedAllergens": ["peanuts", "milk"],
        "analysis": "Contains peanuts and milk.",
        "riskLevel": "HIGH",
        "recommendations": ["Avoid this product"],
        "ingredientHighlights": {
            "safe": ["sugar"],
            "concerning": ["may contain tree nuts"],
            "problematic": ["peanuts", "milk powder"],
        },
    }


# ══════════════════════════════════════════════════════════════════════════
# Plain Data Helpers
# ══════════════════════════════════════════════════════════════════════════

def _member(name, *allergies):
    return SimpleNamespace(
        id=uuid4(),
        name=name,
        allergies=[SimpleNamespace(name=a, severity=s) for a, s in allergies],
    )


@pytest.fixture
def make_member():
    """
    Duck-typed family member for the pure matcher functions.

    make_member("Ava", ("Peanuts", "SEVERE"), ("milk", "MILD"))
    """
    return _member


def _image_bytes(fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), color="white").save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def gif_bytes():
    return _image_bytes("GIF")
