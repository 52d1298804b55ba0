"""Database models - import all models here for Alembic discovery."""

from leasedoc_api.models.audit import AuditLogEntry
from leasedoc_api.models.document import GeneratedDocument
from leasedoc_api.models.lease import Lease, LeaseSigner, Property, PropertyDocument
from leasedoc_api.models.profile import OwnerProfile, Profile

__all__ = [
    "Profile",
    "OwnerProfile",
    "Property",
    "Lease",
    "LeaseSigner",
    "PropertyDocument",
    "GeneratedDocument",
    "AuditLogEntry",
]
