"""Tests for health, readiness and metrics endpoints."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from leasedoc_api.main import app

client = TestClient(app)


def test_health():
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root():
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "Lease Document API"


@patch("leasedoc_api.storage.service.get_storage_service")
def test_ready_reports_unmigrated_database(mock_get_storage_service):
    mock_get_storage_service.return_value = MagicMock(is_available=MagicMock(return_value=True))

    response = client.get("/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "not_ready"
    assert body["checks"]["database"] is True
    assert body["checks"]["migrations"] is False
    assert body["checks"]["object_storage"] is True
    assert body["checks"]["redis"] is None


def test_metrics_exposed():
    response = client.get("/metrics/")

    assert response.status_code == 200
    assert "leasedoc_documents_served_total" in response.text


def test_documents_require_credentials_but_health_does_not():
    assert client.get("/documents/some-lease").status_code == 401
    assert client.get("/health").status_code == 200
