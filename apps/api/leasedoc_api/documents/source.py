"""Loading of the lease source record and its joined records."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from leasedoc_api.documents.errors import NotFoundError
from leasedoc_api.models import (
    Lease,
    LeaseSigner,
    OwnerProfile,
    Profile,
    Property,
    PropertyDocument,
)

logger = logging.getLogger(__name__)

DIAGNOSTIC_DOCUMENT_TYPES = (
    "diagnostic_performance",
    "dpe",
    "crep",
    "plomb",
    "electricite",
    "gaz",
    "erp",
    "risques",
    "amiante",
    "bruit",
)


@dataclass
class LeaseSource:
    """A lease plus every record its document depends on."""

    lease: Lease
    property: Property
    owner: Optional[Profile] = None
    owner_profile: Optional[OwnerProfile] = None
    signers: list[LeaseSigner] = field(default_factory=list)
    diagnostics: list[PropertyDocument] = field(default_factory=list)

    @property
    def lease_id(self) -> str:
        return self.lease.id

    @property
    def owner_id(self) -> str:
        return self.property.owner_id


class LeaseSourceLoader:
    """Read-only loader for lease source records."""

    def __init__(self, db: Session):
        self.db = db

    def load(self, lease_id: str) -> LeaseSource:
        """Load a lease with its property, owner, signers and diagnostics.

        Raises:
            NotFoundError: lease or its property does not exist
        """
        lease = (
            self.db.query(Lease)
            .options(
                selectinload(Lease.property),
                selectinload(Lease.signers).selectinload(LeaseSigner.profile),
            )
            .filter(Lease.id == lease_id)
            .first()
        )
        if not lease:
            raise NotFoundError("Lease not found")

        prop = lease.property
        if not prop:
            logger.warning("Lease has no property", extra={"lease_id": lease_id})
            raise NotFoundError("Lease property not found")

        owner = self.db.query(Profile).filter(Profile.id == prop.owner_id).first()
        owner_profile = (
            self.db.query(OwnerProfile).filter(OwnerProfile.profile_id == prop.owner_id).first()
        )

        diagnostics = (
            self.db.query(PropertyDocument)
            .filter(
                or_(
                    PropertyDocument.property_id == prop.id,
                    PropertyDocument.lease_id == lease.id,
                ),
                PropertyDocument.doc_type.in_(DIAGNOSTIC_DOCUMENT_TYPES),
                PropertyDocument.is_archived == False,  # noqa: E712
            )
            .order_by(PropertyDocument.created_at.asc(), PropertyDocument.id.asc())
            .all()
        )

        return LeaseSource(
            lease=lease,
            property=prop,
            owner=owner,
            owner_profile=owner_profile,
            signers=list(lease.signers or []),
            diagnostics=diagnostics,
        )
