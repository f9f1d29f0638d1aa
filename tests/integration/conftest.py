"""Fixtures for API integration tests."""

import pytest
from fastapi.testclient import TestClient

from app import app
from core.database import get_db
from core.dependencies import get_email_dispatcher


@pytest.fixture
def client(session_factory, dispatcher, school):
    """TestClient bound to the seeded test database and the recording dispatcher."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(token_issuer):
    """Build an Authorization header for an identity."""

    def build(identity) -> dict:
        return {"Authorization": f"Bearer {token_issuer.issue(identity)}"}

    return build
