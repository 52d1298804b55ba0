"""Session tokens (JWT) identifying a profile.

Sessions are issued by the account service; this module only needs to decode
them. ``issue_session_token`` exists for the CLI and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from leasedoc_api.documents.errors import AuthenticationError
from leasedoc_api.settings import Settings, get_settings


def issue_session_token(profile_id: str, settings: Optional[Settings] = None, now: Optional[datetime] = None) -> str:
    """Issue a session JWT for a profile."""
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    claims = {
        "sub": profile_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.jwt_expiration_hours)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str, settings: Optional[Settings] = None) -> str:
    """Return the profile id of a valid session token.

    Raises:
        AuthenticationError: invalid, expired or subject-less token
    """
    settings = settings or get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise AuthenticationError("Invalid or expired session")

    subject = claims.get("sub")
    if not subject:
        raise AuthenticationError("Invalid or expired session")
    return subject
