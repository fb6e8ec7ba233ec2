import pytest
from fastapi.testclient import TestClient

from standings.main import app

# ============================================================================
# The API is stateless: no database, no dependency overrides.
# Each test gets its own TestClient (startup/shutdown run per test).
# ============================================================================


@pytest.fixture(name="client")
def client_fixture():
    """Provide a test client for the standings API"""
    with TestClient(app) as client:
        yield client
