"""Pytest configuration for API and service tests

Provides an in-memory database shared by request handlers and background
tasks, a TestClient, and user/token factories.
"""

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set test environment before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["APP_ENV"] = "test"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ["MISTRAL_API_KEY"] = ""
os.environ["AMAZON_API_ENABLED"] = "false"
os.environ["AMADEUS_CLIENT_ID"] = ""
os.environ["AMADEUS_CLIENT_SECRET"] = ""
os.environ["FRONTEND_URL"] = "https://app.test"
os.environ["TRANSLATIONS_DIR"] = str(PROJECT_ROOT / "localization" / "translations")

import models  # noqa: E402
from database import engine, SessionLocal  # noqa: E402
from routers.utils import create_access_token, token_claims  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_session():
    """Fresh schema per test on the app's own engine.

    The in-memory engine uses a StaticPool, so request handlers and
    background tasks opening their own SessionLocal() see the same data.
    """
    models.Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()
    models.Base.metadata.drop_all(bind=engine)


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def client(db_session) -> TestClient:
    """TestClient without lifespan: no migrations or translation import."""
    from main import app
    return TestClient(app)


# ============================================================================
# User / Authentication Fixtures
# ============================================================================

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(email=None, first_name="Test", last_name="User", password=None):
        counter["n"] += 1
        user = models.User(
            email=email or f"user{counter['n']}@example.org",
            first_name=first_name,
            last_name=last_name,
            password=password,
            auth_provider="password",
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}

    return _auth_headers


@pytest.fixture
def make_event(client, auth_headers):
    """Create an event through the API and return its JSON body."""

    def _make_event(user, **fields):
        payload = {
            "title": "Summer trip",
            "start_date": "2026-07-01T10:00:00",
            "end_date": "2026-07-08T10:00:00",
            "location": "Lisbon",
        }
        payload.update(fields)
        response = client.post("/events", json=payload, headers=auth_headers(user))
        assert response.status_code == 201, response.text
        return response.json()["event"]

    return _make_event
