"""Authentication middleware: resolve the caller from a session or invitation token."""

import logging

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from leasedoc_api.auth.caller import ANONYMOUS, Caller
from leasedoc_api.auth.invitation import get_invitation_service
from leasedoc_api.auth.session import decode_session_token
from leasedoc_api.documents.errors import AuthenticationError

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES = ("/documents",)


def _bearer_token(request: Request):
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach ``request.state.caller``.

    Only tokens are checked here; whether the caller may read a given lease is
    decided by the retrieval service.
    """

    async def dispatch(self, request: Request, call_next):
        """Process request with caller extraction."""
        request.state.caller = ANONYMOUS

        # Skip auth for health checks, docs, and metrics
        if not request.url.path.startswith(PROTECTED_PREFIXES):
            return await call_next(request)

        session_token = _bearer_token(request)
        invitation_token = request.query_params.get("token") or request.headers.get("x-invitation-token")

        try:
            if session_token:
                caller = Caller(profile_id=decode_session_token(session_token))
            elif invitation_token:
                caller = Caller(invitation=get_invitation_service().verify(invitation_token))
            else:
                raise AuthenticationError(
                    "Missing credentials. Provide a bearer token or an invitation token."
                )
        except AuthenticationError as e:
            logger.info(
                f"Rejected unauthenticated request: {e.code}",
                extra={
                    "path": request.url.path,
                    "correlation_id": getattr(request.state, "correlation_id", None),
                },
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": e.message, "code": e.code},
            )

        request.state.caller = caller
        return await call_next(request)
