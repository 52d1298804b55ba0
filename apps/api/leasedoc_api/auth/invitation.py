"""Signed invitation tokens.

Invitation links let a counter-party who has no session yet (an invited
tenant or guarantor) open the lease. Tokens are compact JWS objects (HS256)
over ``{lease_id, email, iat, exp}``. The signature is verified before any
claim is read, and expiry is checked explicitly afterwards.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jws
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError

from leasedoc_api.documents.errors import InvitationExpiredError, InvitationTokenError
from leasedoc_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("lease_id", "email", "iat", "exp")


@dataclass(frozen=True)
class InvitationClaims:
    """Verified invitation claims."""

    lease_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


class InvitationTokenService:
    """Issue and verify invitation tokens."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        # 32-byte HMAC key derived from the configured secret
        self._key = hashlib.sha256(settings.invitation_secret_key.encode()).digest()
        self.ttl = timedelta(days=settings.invitation_token_ttl_days)

    def issue(self, lease_id: str, email: str, now: Optional[datetime] = None) -> str:
        """Create a signed invitation token for a lease and an invited email."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "lease_id": lease_id,
            "email": email.strip().lower(),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        payload_json = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return jws.sign(payload_json.encode("utf-8"), self._key, algorithm=ALGORITHMS.HS256)

    def verify(self, token: str, now: Optional[datetime] = None) -> InvitationClaims:
        """Verify a token and return its claims.

        Raises:
            InvitationTokenError: malformed, forged or legacy token
            InvitationExpiredError: signature valid but token expired
        """
        if not token or token.count(".") != 2:
            # Legacy base64 "leaseId:email:timestamp" tokens carry no signature
            raise InvitationTokenError("Unsupported invitation token format")

        try:
            payload_bytes = jws.verify(token, self._key, algorithms=[ALGORITHMS.HS256])
        except JOSEError as e:
            logger.warning(f"Invitation token signature rejected: {e}")
            raise InvitationTokenError()

        try:
            payload = json.loads(payload_bytes.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise InvitationTokenError()

        if not isinstance(payload, dict) or any(claim not in payload for claim in REQUIRED_CLAIMS):
            raise InvitationTokenError("Invitation token is missing claims")

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            raise InvitationTokenError("Invitation token has invalid timestamps")

        now = now or datetime.now(timezone.utc)
        if now >= expires_at:
            raise InvitationExpiredError()

        return InvitationClaims(
            lease_id=str(payload["lease_id"]),
            email=str(payload["email"]).strip().lower(),
            issued_at=issued_at,
            expires_at=expires_at,
        )


# Global instance
_invitation_service: Optional[InvitationTokenService] = None


def get_invitation_service() -> InvitationTokenService:
    """Get or create invitation token service instance."""
    global _invitation_service
    if _invitation_service is None:
        _invitation_service = InvitationTokenService()
    return _invitation_service
