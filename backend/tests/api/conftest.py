"""Fixtures for API tests: a fresh app with its services overridden."""

import pytest
from fastapi.testclient import TestClient

from api import create_app
from api.dependencies import get_auth_service


@pytest.fixture
def app(auth_service):
    app = create_app()
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # Not used as a context manager, so the lifespan (database pool) never runs.
    return TestClient(app)
