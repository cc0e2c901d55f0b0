"""Tests for request logging middleware."""

import json
import logging

import pytest
from fastapi import Response
from fastapi.testclient import TestClient

from omr_scoring.main import app
from omr_scoring.middleware.logging import decode_outcome, resolve_request_id
from omr_scoring.middleware.rate_limit import limiter


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the rate limiter before each test."""
    limiter.reset()


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


def logged_entries(caplog) -> list:
    return [
        json.loads(r.getMessage())
        for r in caplog.records
        if r.name == "omr_scoring.middleware.logging"
    ]


class TestRequestId:
    """Tests for request ID handling."""

    def test_plain_token_is_kept(self):
        assert resolve_request_id("batch-42.retry_1") == "batch-42.retry_1"

    @pytest.mark.parametrize("incoming", [None, "", "has space", "x" * 65, "line\nbreak"])
    def test_unusable_ids_are_replaced(self, incoming):
        """Test that missing or unsafe IDs get a fresh UUID."""
        request_id = resolve_request_id(incoming)

        assert request_id != incoming
        assert len(request_id) == 36

    def test_unsafe_header_not_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "a b"})

        assert response.headers["X-Request-ID"] != "a b"


class TestDecodeOutcome:
    """Tests for reading router summary headers."""

    def test_parses_summary_headers(self):
        response = Response(headers={
            "X-Record-Count": "12",
            "X-Rejected-Count": "2",
            "X-Average-Confidence": "0.8125",
        })

        assert decode_outcome(response) == {
            "record_count": 12,
            "rejected_count": 2,
            "average_confidence": 0.8125,
        }

    def test_plain_response_has_no_outcome(self):
        assert decode_outcome(Response()) == {}


class TestRequestLogging:
    """Tests for the logged request entry."""

    def test_decode_request_logged_with_outcome(self, client, caplog, lgs_template, line_builder):
        """Test that a decode call logs counts and body size but not the text."""
        caplog.set_level(logging.INFO, logger="omr_scoring.middleware.logging")

        response = client.post("/api/decode", json={
            "text": "\n".join([line_builder(name="GIZLI OGRENCI"), line_builder(answers="-" * 90)]),
            "template": lgs_template.model_dump(mode="json"),
        })

        assert response.status_code == 200
        entry = logged_entries(caplog)[-1]
        assert entry["path"] == "/api/decode"
        assert entry["status_code"] == 200
        assert entry["record_count"] == 2
        assert entry["rejected_count"] == 1
        assert entry["body_bytes"] > 0
        assert entry["request_id"] == response.headers["X-Request-ID"]
        assert "GIZLI" not in caplog.text

    def test_rate_limited_request_logged_as_warning(self, client, caplog, monkeypatch):
        """Test that 429 responses are logged at WARNING."""
        monkeypatch.setenv("RATE_LIMIT_SCORE", "1/minute")
        caplog.set_level(logging.INFO, logger="omr_scoring.middleware.logging")
        body = {"subject_answers": {}, "answer_key": {"entries": []}}

        client.post("/api/score", json=body)
        client.post("/api/score", json=body)

        last = [r for r in caplog.records if r.name == "omr_scoring.middleware.logging"][-1]
        assert last.levelno == logging.WARNING
        assert json.loads(last.getMessage())["status_code"] == 429
