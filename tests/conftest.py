"""
Test Configuration and Fixtures

Shared fixtures for the pricing engine test suite.
"""

import os

import pytest

# Set test environment variables before importing the app.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/1")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "text")


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (may use real services)")


def pytest_collection_modifyitems(config, items):
    """
    Auto-assign tier markers so we can run:
    - pytest -m unit
    - pytest -m integration

    Convention:
    - tests/integration/** => integration
    - everything else      => unit
    """
    for item in items:
        path = str(getattr(item, "fspath", ""))
        if item.get_closest_marker("integration") or item.get_closest_marker("unit"):
            continue
        if "/tests/integration/" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# RECORD STORE FIXTURES
# =============================================================================


@pytest.fixture
def settings():
    from pricing_engine.config import Settings

    return Settings(
        environment="test",
        default_region="NAMER",
        quote_expiration_days=30,
        commit_all_or_none=True,
    )


@pytest.fixture
def fake_data_api():
    from tests.support.record_store import FakeDataApi

    api = FakeDataApi()
    api.add_query("FROM Pricebook2", [{"Id": "01s000000000001AAA"}])
    return api


@pytest.fixture
def opportunity_record(fake_data_api):
    """Build an Opportunity record with nested line items on `fake_data_api`."""

    def _build(opportunity_id: str, line_items: list[dict], *, close_date: str | None = "2026-03-01"):
        record = {
            "attributes": {"type": "Opportunity"},
            "Id": opportunity_id,
            "Name": f"Deal {opportunity_id}",
            "CloseDate": close_date,
            "OpportunityLineItems": None,
        }
        if line_items:
            record["OpportunityLineItems"] = fake_data_api.nested(f"{opportunity_id}-items", line_items)
        return record

    return _build


@pytest.fixture
def line_item():
    def _build(item_id: str, *, unit_price: float | None = 100.0, quantity: float = 2.0):
        return {
            "attributes": {"type": "OpportunityLineItem"},
            "Id": item_id,
            "Product2Id": f"01t{item_id}",
            "PricebookEntryId": f"01u{item_id}",
            "Quantity": quantity,
            "UnitPrice": unit_price,
        }

    return _build
