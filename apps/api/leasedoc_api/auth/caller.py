"""Authenticated caller of a document request."""

from dataclasses import dataclass
from typing import Optional

from leasedoc_api.auth.invitation import InvitationClaims


@dataclass(frozen=True)
class Caller:
    """Either a session-authenticated profile or an invitation-link holder."""

    profile_id: Optional[str] = None
    invitation: Optional[InvitationClaims] = None

    @property
    def is_authenticated(self) -> bool:
        return self.profile_id is not None or self.invitation is not None

    @property
    def actor_id(self) -> Optional[str]:
        return self.profile_id

    def describe(self) -> dict:
        """Audit-safe description of the caller."""
        if self.profile_id:
            return {"auth": "session"}
        if self.invitation:
            return {"auth": "invitation", "invited_email": self.invitation.email}
        return {"auth": "anonymous"}


ANONYMOUS = Caller()
