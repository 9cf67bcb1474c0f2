"""Tests for error handling in the LoyaltyRec API.

Tests validation errors, data access failures and unexpected recompute
errors, all of which share the same JSON error envelope.
"""

import inspect
import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from loyaltyrec import exceptions
from loyaltyrec.api.exceptions import DataAccessError, LoyaltyRecException, RecomputeError
from loyaltyrec.api.main import app
from loyaltyrec.api.metrics import metrics_service
from loyaltyrec.api.routes import recommendations
from loyaltyrec.engine import recompute
from loyaltyrec.storage import repository
from loyaltyrec.storage.database import get_session

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)

# Create test client
client = TestClient(app)


def database_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))


@pytest.fixture(autouse=True)
def override_session(session_factory):
    def _get_session():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    metrics_service.reset()
    yield
    app.dependency_overrides.clear()
    metrics_service.reset()


def test_invalid_k_returns_422():
    """Test that k below 1 is rejected with the error envelope."""
    response = client.post("/owners/1/recommendations/recompute-kmeans?k=0")

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert data["message"] == "Invalid request parameters"
    assert any("k" in error["loc"] for error in data["details"]["errors"])


def test_invalid_min_confidence_returns_422():
    response = client.post("/owners/1/recommendations/recompute?minConfidence=150")

    assert response.status_code == 422
    assert any("minConfidence" in error["loc"] for error in response.json()["details"]["errors"])


def test_non_numeric_owner_returns_422():
    response = client.get("/owners/abc/recommendations")

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_data_access_failure_returns_500(monkeypatch):
    """Backing store failures surface as DataAccessError with details."""
    monkeypatch.setattr(recompute, "fetch_owned_store_ids", database_down)

    response = client.post("/owners/1/recommendations/recompute")

    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "DataAccessError"
    assert "owner 1" in data["message"]
    assert data["details"] == {
        "owner_id": 1,
        "operation": "recompute",
        "error_type": "OperationalError",
    }
    assert client.get("/metrics").json()["recomputes"]["association_rules"]["failures"] == 1


def test_query_failure_returns_500(monkeypatch):
    monkeypatch.setattr(repository, "fetch_product_names", database_down)

    response = client.get("/owners/1/recommendations")

    assert response.status_code == 500
    assert response.json()["details"]["operation"] == "query"


def test_insights_failure_returns_500(monkeypatch):
    monkeypatch.setattr(recompute, "fetch_owned_store_ids", database_down)

    response = client.get("/owners/1/recommendations/insights")

    assert response.status_code == 500
    assert response.json()["details"]["operation"] == "insights"


def test_unexpected_error_returns_recompute_error(monkeypatch):
    def broken_recompute(*args, **kwargs):
        raise RuntimeError("clustering exploded")

    monkeypatch.setattr(recommendations, "recompute_kmeans_recommendations", broken_recompute)

    response = client.post("/owners/1/recommendations/recompute-kmeans")

    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "RecomputeError"
    assert data["details"]["strategy"] == "kmeans"
    assert "clustering exploded" in data["message"]
    assert client.get("/metrics").json()["recomputes"]["kmeans"]["failures"] == 1


def test_exception_hierarchy():
    error = DataAccessError(7, RuntimeError("down"))

    assert isinstance(error, LoyaltyRecException)
    assert error.status_code == 500
    assert error.details["operation"] == "recompute"
    assert isinstance(RecomputeError(7, "kmeans", ValueError("x")), LoyaltyRecException)


def test_engine_errors_do_not_depend_on_the_api():
    assert DataAccessError is exceptions.DataAccessError
    assert RecomputeError is exceptions.RecomputeError
    assert "loyaltyrec.api" not in inspect.getsource(recompute)
