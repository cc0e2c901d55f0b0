"""Tests for FastAPI application endpoints."""

import pytest
from fastapi.testclient import TestClient

from omr_scoring.main import app


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


# Version Endpoint Tests


def test_version_endpoint(client: TestClient) -> None:
    """Test version endpoint returns version and commit hash."""
    response = client.get("/version")
    assert response.status_code == 200

    data = response.json()
    assert data == {"version": "1.0.0", "commit_hash": "development"}


# Health Check Tests


def test_health_check(client: TestClient) -> None:
    """Test health check lists the loaded presets."""
    response = client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert data["exam_presets"] == ["LGS", "TYT"]
    assert "LGS_STANDARD" in data["templates"]


def test_request_id_header(client: TestClient) -> None:
    """Test that every response carries a request ID."""
    response = client.get("/health")
    assert response.headers.get("X-Request-ID")


def test_request_id_echoed(client: TestClient) -> None:
    """Test that a caller-supplied request ID is kept."""
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_startup_with_invalid_settings_fails(monkeypatch) -> None:
    """Test that the lifespan refuses to start with a bad configuration."""
    monkeypatch.setenv("DEFAULT_EXAM_TYPE", "SAT")

    with pytest.raises(Exception):
        with TestClient(app):
            pass
