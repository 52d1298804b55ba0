"""Tests for the lease document routes."""

import base64

import pytest
from fastapi.testclient import TestClient

from leasedoc_api.auth.invitation import get_invitation_service
from leasedoc_api.auth.session import issue_session_token
from leasedoc_api.main import app
from leasedoc_api.routes.documents import get_document_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_document_service] = lambda: service
    try:
        yield TestClient(app, follow_redirects=False)
    finally:
        app.dependency_overrides.pop(get_document_service, None)


def _bearer(profile_id):
    return {"Authorization": f"Bearer {issue_session_token(profile_id)}"}


class TestGetDocument:
    def test_missing_credentials(self, client, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}")

        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_invalid_session_token(self, client, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired session", "code": "unauthenticated"}

    def test_owner_is_redirected_to_signed_url(self, client, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}", headers=_bearer(world.owner.id))

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://storage.test/lease-documents/leases/")
        assert response.headers["x-document-cached"] == "false"
        assert len(response.headers["x-document-fingerprint"]) == 16

    def test_second_request_is_cached(self, client, renderer, make_lease):
        world = make_lease()
        client.get(f"/documents/{world.lease.id}", headers=_bearer(world.owner.id))

        response = client.get(f"/documents/{world.lease.id}", headers=_bearer(world.owner.id))

        assert response.status_code == 302
        assert response.headers["x-document-cached"] == "true"
        assert renderer.calls == 1

    def test_link_as_json(self, client, make_lease):
        world = make_lease()

        response = client.get(
            f"/documents/{world.lease.id}",
            params={"redirect": "false"},
            headers=_bearer(world.owner.id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["cached"] is False
        assert body["expires_in"] == 3600
        assert body["url"].startswith("https://storage.test/")
        assert body["storage_path"] == f"leases/{world.lease.id}/lease-document-{body['fingerprint']}.pdf"

    def test_bytes_when_signed_url_unavailable(self, client, storage, make_lease):
        world = make_lease()
        storage.signed_url_available = False

        response = client.get(f"/documents/{world.lease.id}", headers=_bearer(world.owner.id))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        reference = world.lease.id[:8].upper()
        assert response.headers["content-disposition"] == f'attachment; filename="bail_{reference}.pdf"'
        assert response.headers["cache-control"] == "private, no-store"
        assert response.content == next(iter(storage.blobs.values()))

    def test_unrelated_profile_forbidden(self, client, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}", headers=_bearer(world.outsider.id))

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_unknown_lease(self, client, make_lease):
        world = make_lease()

        response = client.get("/documents/8b1f4b7e-0000-4000-8000-000000000000", headers=_bearer(world.owner.id))

        assert response.status_code == 404
        assert response.json() == {"error": "Lease not found", "code": "not_found"}

    def test_incomplete_lease_is_unprocessable(self, client, make_lease):
        world = make_lease(rent=None)

        response = client.get(f"/documents/{world.lease.id}", headers=_bearer(world.owner.id))

        assert response.status_code == 422
        assert response.json()["code"] == "assembly_failed"

    def test_invitation_token_in_query(self, client, make_lease):
        world = make_lease()
        token = get_invitation_service().issue(world.lease.id, world.tenant.email)

        response = client.get(f"/documents/{world.lease.id}", params={"token": token})

        assert response.status_code == 302

    def test_invitation_token_in_header(self, client, make_lease):
        world = make_lease()
        token = get_invitation_service().issue(world.lease.id, world.tenant.email)

        response = client.get(f"/documents/{world.lease.id}", headers={"x-invitation-token": token})

        assert response.status_code == 302

    def test_legacy_invitation_token_rejected(self, client, make_lease):
        world = make_lease()
        legacy = base64.b64encode(f"{world.lease.id}:{world.tenant.email}:1735689600".encode()).decode()

        response = client.get(f"/documents/{world.lease.id}", params={"token": legacy})

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_invitation_token"

    def test_correlation_id_is_echoed(self, client, make_lease):
        world = make_lease()

        response = client.get(
            f"/documents/{world.lease.id}",
            headers={**_bearer(world.owner.id), "x-correlation-id": "corr-123"},
        )

        assert response.headers["x-correlation-id"] == "corr-123"


class TestPreview:
    def test_html_preview(self, client, renderer, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}/html", headers=_bearer(world.owner.id))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Claire Martin" in response.text
        assert "850,00 €" in response.text
        assert renderer.calls == 0

    def test_html_preview_requires_access(self, client, make_lease):
        world = make_lease()

        response = client.get(f"/documents/{world.lease.id}/html", headers=_bearer(world.outsider.id))

        assert response.status_code == 403
