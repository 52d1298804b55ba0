"""Lease document routes.

``GET /documents/{lease_id}`` redirects to a short-lived signed URL of the
latest rendered lease, rendering it first when the lease changed. When no
signed URL can be issued the PDF bytes are returned directly.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from leasedoc_api.auth.caller import ANONYMOUS, Caller
from leasedoc_api.db.session import get_db
from leasedoc_api.documents.orchestrator import DocumentRetrievalService

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger(__name__)


class DocumentLinkResponse(BaseModel):
    """Signed URL answer for clients that do not follow redirects."""

    url: str
    cached: bool
    fingerprint: str
    storage_path: str
    expires_in: Optional[int] = None


def get_document_service(db: Session = Depends(get_db)) -> DocumentRetrievalService:
    """Build the retrieval service for the request session."""
    return DocumentRetrievalService(db)


def get_caller(request: Request) -> Caller:
    return getattr(request.state, "caller", ANONYMOUS)


@router.get(
    "/{lease_id}",
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Document bytes or signed link"},
        302: {"description": "Redirect to a signed URL"},
    },
)
def get_lease_document(
    lease_id: str,
    request: Request,
    redirect: bool = Query(default=True, description="Redirect to the signed URL instead of returning it"),
    caller: Caller = Depends(get_caller),
    service: DocumentRetrievalService = Depends(get_document_service),
):
    """Serve the latest lease document."""
    correlation_id = getattr(request.state, "correlation_id", None)
    result = service.retrieve(lease_id, caller, correlation_id=correlation_id)

    headers = {"x-document-fingerprint": result.fingerprint, "x-document-cached": str(result.cached).lower()}

    if result.signed_url:
        if redirect:
            headers["Location"] = result.signed_url
            return Response(status_code=status.HTTP_302_FOUND, headers=headers)
        return DocumentLinkResponse(
            url=result.signed_url,
            cached=result.cached,
            fingerprint=result.fingerprint,
            storage_path=result.storage_path,
            expires_in=result.expires_in,
        )

    headers["Content-Disposition"] = f'attachment; filename="{result.filename}"'
    headers["Cache-Control"] = "private, no-store"
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers=headers,
    )


@router.get("/{lease_id}/html", response_class=HTMLResponse)
def preview_lease_document(
    lease_id: str,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: DocumentRetrievalService = Depends(get_document_service),
):
    """HTML preview of the lease, assembled from current data."""
    correlation_id = getattr(request.state, "correlation_id", None)
    html = service.preview_html(lease_id, caller, correlation_id=correlation_id)
    return HTMLResponse(content=html, headers={"Cache-Control": "private, no-store"})
