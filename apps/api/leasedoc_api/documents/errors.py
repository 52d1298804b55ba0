"""Error taxonomy for document retrieval.

Every error carries a stable ``code`` and an HTTP status so the API layer can
answer with ``{"error": message, "code": code}`` without leaking internals.
Messages are safe to show to callers; details belong in server logs.
"""

from typing import Optional


class DocumentError(Exception):
    """Base class for document pipeline errors."""

    code = "internal_error"
    http_status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(DocumentError):
    code = "unauthenticated"
    http_status = 401
    default_message = "Authentication required"


class InvitationTokenError(AuthenticationError):
    code = "invalid_invitation_token"
    default_message = "Invalid invitation token"


class InvitationExpiredError(InvitationTokenError):
    code = "invitation_token_expired"
    default_message = "Invitation token expired"


class AuthorizationError(DocumentError):
    code = "forbidden"
    http_status = 403
    default_message = "You are not allowed to access this document"


class NotFoundError(DocumentError):
    code = "not_found"
    http_status = 404
    default_message = "Lease not found"


class AssemblyError(DocumentError):
    """Source data cannot be mapped into a valid render model."""

    code = "assembly_failed"
    http_status = 500
    default_message = "Lease data is incomplete"

    def __init__(self, message: Optional[str] = None, caller_fixable: bool = False):
        super().__init__(message)
        self.caller_fixable = caller_fixable
        if caller_fixable:
            self.http_status = 422


class RenderError(DocumentError):
    """Renderer failed; safe to retry."""

    code = "render_failed"
    default_message = "Document rendering failed, please retry"


class StorageUploadError(DocumentError):
    code = "storage_upload_failed"
    default_message = "Document could not be stored, please retry"


class StorageReadError(DocumentError):
    code = "storage_read_failed"
    default_message = "Stored document could not be read"


class SignedUrlError(DocumentError):
    """Signed URL issuance failed; callers fall back to raw bytes."""

    code = "signed_url_failed"
    default_message = "Download link unavailable"


class IndexWriteError(DocumentError):
    code = "index_write_failed"
    default_message = "Document metadata could not be saved, please retry"


class ArtifactConflictError(DocumentError):
    """Another writer updated the artifact row first."""

    code = "artifact_conflict"
    default_message = "Document was updated concurrently"

    def __init__(self, current=None, message: Optional[str] = None):
        super().__init__(message)
        self.current = current


class AuditWriteError(DocumentError):
    """Audit entry could not be persisted. Never surfaced to callers."""

    code = "audit_write_failed"
    default_message = "Audit entry could not be written"
