"""Tests for lease document rendering."""

import time
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import httpx
import pytest

from leasedoc_api.documents.assembler import DocumentAssembler
from leasedoc_api.documents.errors import RenderError
from leasedoc_api.documents.renderer import LeaseDocumentRenderer, format_date, format_money, signature_proof
from leasedoc_api.documents.source import LeaseSourceLoader


@pytest.fixture
def lease_doc(db, make_lease):
    world = make_lease()
    return DocumentAssembler().assemble(LeaseSourceLoader(db).load(world.lease.id))


@pytest.fixture
def local_renderer():
    return LeaseDocumentRenderer(timeout_seconds=30, pdf_service_url="")


class TestHtml:
    def test_contains_contract_sections(self, local_renderer, lease_doc):
        html = local_renderer.render_html(lease_doc)

        assert "Bail d&#39;habitation (logement vide)" in html
        assert "Claire Martin" in html
        assert "Lucas Bernard" in html
        assert "850,00 €" in html
        assert "huit cent cinquante euros" in html
        assert "Avant 1949" in html
        assert "Fait à Lyon" in html

    def test_values_are_escaped(self, local_renderer, lease_doc):
        lease_doc.landlord.display_name = "<script>alert(1)</script>"

        html = local_renderer.render_html(lease_doc)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html


    def test_signed_block_shows_proof(self, local_renderer, lease_doc):
        tenant = lease_doc.signatures.tenant
        tenant.status = "signed"
        tenant.signed_at = datetime(2025, 8, 20, 9, 0)
        tenant.proof_id = "PRF-2025-0042"
        tenant.document_hash = "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08"

        html = local_renderer.render_html(lease_doc)

        assert "Signé électroniquement le 20/08/2025" in html
        assert "Preuve PRF-2025-0042" in html
        assert "Hash du document 9f86d081884c7d659a2feaa0c55ad015..." in html


class TestPdf:
    def test_local_pdf(self, local_renderer, lease_doc):
        rendered = local_renderer.render(lease_doc)

        assert rendered.content.startswith(b"%PDF")
        assert rendered.content_type == "application/pdf"
        assert rendered.filename == f"bail_{lease_doc.reference}.pdf"

    def test_local_pdf_is_byte_stable(self, local_renderer, lease_doc):
        assert local_renderer.render_pdf(lease_doc) == local_renderer.render_pdf(lease_doc)

    def test_timeout(self, lease_doc):
        renderer = LeaseDocumentRenderer(timeout_seconds=0.05, pdf_service_url="")

        with patch.object(renderer, "render_pdf", side_effect=lambda doc: time.sleep(0.5) or b"%PDF"):
            with pytest.raises(RenderError, match="timed out"):
                renderer.render(lease_doc)

    def test_layout_failure(self, local_renderer, lease_doc):
        with patch.object(local_renderer, "render_pdf", side_effect=ValueError("bad font")):
            with pytest.raises(RenderError):
                local_renderer.render(lease_doc)


class TestRemotePdf:
    @pytest.fixture
    def remote_renderer(self):
        return LeaseDocumentRenderer(timeout_seconds=5, pdf_service_url="http://pdf.test/render")

    @patch("leasedoc_api.documents.renderer.httpx.post")
    def test_remote_pdf(self, mock_post, remote_renderer, lease_doc):
        mock_post.return_value = MagicMock(content=b"%PDF-1.7 remote")

        rendered = remote_renderer.render(lease_doc)

        assert rendered.content == b"%PDF-1.7 remote"
        url = mock_post.call_args.args[0]
        payload = mock_post.call_args.kwargs["json"]
        assert url == "http://pdf.test/render"
        assert "Claire Martin" in payload["html"]
        assert payload["filename"] == f"bail_{lease_doc.reference}.pdf"

    @patch("leasedoc_api.documents.renderer.httpx.post")
    def test_remote_non_pdf_body(self, mock_post, remote_renderer, lease_doc):
        mock_post.return_value = MagicMock(content=b"<html>error</html>", headers={"content-type": "text/html"})

        with pytest.raises(RenderError):
            remote_renderer.render(lease_doc)

    @patch("leasedoc_api.documents.renderer.httpx.post")
    def test_remote_unreachable(self, mock_post, remote_renderer, lease_doc):
        mock_post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(RenderError):
            remote_renderer.render(lease_doc)


def test_format_money():
    assert format_money(Decimal("1234.5")) == "1 234,50 €"
    assert format_money(Decimal("0")) == "0,00 €"
    assert format_money(None) == ".......... €"


def test_format_date():
    assert format_date(date(2025, 9, 1)) == "01/09/2025"
    assert format_date(None) == ".........."


def test_signature_proof():
    signed = {"status": "signed", "proof_id": "PRF-1", "document_hash": "ab" * 32}

    assert signature_proof(signed) == f"Preuve PRF-1, Hash du document {'ab' * 16}..."
    assert signature_proof({**signed, "proof_id": None}) == f"Hash du document {'ab' * 16}..."
    assert signature_proof({**signed, "status": "pending"}) == ""
    assert signature_proof({"status": "signed", "proof_id": None, "document_hash": None}) == ""
