"""
Fixtures for API integration tests.

Requests go through the real FastAPI app with JWT authentication; only the
database session and the financial cache are swapped for test instances.
"""

import pytest
from fastapi.testclient import TestClient

from api.financial import get_financial_cache
from core.database import get_db
from main import app
from services.cache_service import TTLCache


@pytest.fixture
def financial_cache():
    return TTLCache(ttl_seconds=300)


@pytest.fixture
def api_client(db_session, financial_cache):
    """TestClient bound to the test database session."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_financial_cache] = lambda: financial_cache
    client = TestClient(app)

    yield client

    app.dependency_overrides.clear()
