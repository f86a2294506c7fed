"""Tests for the quote API routes."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pricing_engine.api.main import app
from pricing_engine.kernel.errors import NotFoundError, QueryError, QuoteCreationError


@pytest.fixture
def client():
    # Lifespan is not entered, so no real Redis or record store is touched.
    yield TestClient(app)
    for attr in ("quote_service", "redis"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)


@pytest.fixture
def quote_service():
    service = MagicMock()
    service.generate_quote = AsyncMock(return_value="0Q0000000000001")
    app.state.quote_service = service
    return service


@pytest.fixture
def redis():
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    app.state.redis = redis
    return redis


class TestCreateQuote:
    def test_returns_quote_id(self, client, quote_service):
        response = client.post("/createQuote", json={"opportunityId": "006A"})

        assert response.status_code == 200
        assert response.json() == {"quoteId": "0Q0000000000001"}
        quote_service.generate_quote.assert_awaited_once_with("006A")

    def test_client_not_initialized(self, client):
        response = client.post("/createQuote", json={"opportunityId": "006A"})

        assert response.status_code == 401
        assert response.json() == {"error": True, "message": "Record store client not initialized"}

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (NotFoundError(message="Opportunity not found for ID: 006A"), 404),
            (QuoteCreationError(message="Failed to create quote: REQUIRED_FIELD_MISSING"), 400),
            (QueryError(message="Standard Pricebook not found."), 500),
        ],
    )
    def test_typed_errors_map_to_status(self, client, quote_service, error, status_code):
        quote_service.generate_quote.side_effect = error

        response = client.post("/createQuote", json={"opportunityId": "006A"})

        assert response.status_code == status_code
        assert response.json() == {"error": True, "message": error.message}

    def test_unexpected_error_is_500(self, client, quote_service):
        quote_service.generate_quote.side_effect = RuntimeError("socket closed")

        response = client.post("/createQuote", json={"opportunityId": "006A"})

        assert response.status_code == 500
        assert response.json()["message"] == "An unexpected error occurred: socket closed"

    def test_missing_opportunity_id_is_400(self, client, quote_service):
        response = client.post("/createQuote", json={})

        assert response.status_code == 400
        assert response.json()["error"] is True
        quote_service.generate_quote.assert_not_awaited()


class TestCreateQuotes:
    def test_publishes_job_and_returns_job_id(self, client, redis):
        response = client.post(
            "/createQuotes",
            json={"opportunityIds": ["006A", "006B"], "callbackUrl": "https://cb.example/x"},
        )

        assert response.status_code == 201
        job_id = response.json()["jobId"]
        channel, message = redis.publish.await_args.args
        assert channel == "jobsChannel"
        assert json.loads(message) == {
            "jobId": job_id,
            "jobType": "quote",
            "sourceIds": ["006A", "006B"],
            "callbackUrl": "https://cb.example/x",
        }

    def test_each_request_gets_a_new_job_id(self, client, redis):
        first = client.post("/createQuotes", json={"opportunityIds": ["006A"]}).json()["jobId"]
        second = client.post("/createQuotes", json={"opportunityIds": ["006A"]}).json()["jobId"]

        assert first != second

    def test_publish_failure_is_500(self, client, redis):
        redis.publish.side_effect = ConnectionError("redis down")

        response = client.post("/createQuotes", json={"opportunityIds": ["006A"]})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to publish job."}

    def test_redis_not_initialized_is_500(self, client):
        response = client.post("/createQuotes", json={"opportunityIds": ["006A"]})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to publish job."}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_reports_missing_record_store(self, client, redis):
        redis.ping = AsyncMock(return_value=True)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"redis": True, "record_store": False}
