"""Content fingerprint for lease documents.

The fingerprint is a truncated SHA-256 over a canonical JSON projection of the
fields that end up in the rendered document. Volatile fields (access counters)
are left out so that reading a lease never invalidates its cached document.
Related collections are projected in full, including their size, so adding or
removing a signer or a diagnostic invalidates the cache.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from leasedoc_api.documents.source import LeaseSource

LEASE_FIELDS = (
    "id",
    "property_id",
    "lease_type",
    "status",
    "rent",
    "charges",
    "deposit",
    "start_date",
    "end_date",
    "payment_day",
    "tenant_name_pending",
    "signing_date",
    "created_at",
)

PROPERTY_FIELDS = (
    "id",
    "owner_id",
    "address",
    "postal_code",
    "city",
    "property_type",
    "living_area_m2",
    "surface",
    "rooms",
    "floor",
    "floors_in_building",
    "has_elevator",
    "construction_year",
    "ownership_regime",
    "heating_type",
    "heating_energy",
    "hot_water_type",
    "hot_water_energy",
    "energy_class",
    "energie",
    "ghg_class",
    "ges",
    "dpe_date",
    "dpe_valid_until",
    "dpe_consumption",
    "dpe_emissions",
    "dpe_cost_min",
    "dpe_cost_max",
    "reference_rent",
    "monthly_charges",
    "air_conditioning",
    "equipped_kitchen",
    "intercom",
    "digicode",
    "fiber",
    "has_balcony",
    "has_terrace",
    "has_cellar",
    "has_garden",
    "has_parking",
)

PROFILE_FIELDS = (
    "id",
    "first_name",
    "last_name",
    "email",
    "phone",
    "birth_date",
    "birth_place",
    "nationality",
    "address",
)

OWNER_PROFILE_FIELDS = (
    "owner_type",
    "company_name",
    "legal_form",
    "siret",
    "billing_address",
    "head_office_address",
    "representative_name",
    "representative_title",
)

SIGNER_FIELDS = (
    "id",
    "role",
    "signature_status",
    "signed_at",
    "profile_id",
    "invited_email",
    "invited_name",
    "proof_id",
    "document_hash",
)

DIAGNOSTIC_FIELDS = ("id", "doc_type", "metadata_json", "expiry_date", "created_at", "updated_at")


def _normalize(value: Any) -> Any:
    if isinstance(value, Decimal):
        # 1200 and 1200.00 must hash the same
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, float):
        return format(Decimal(str(value)).normalize(), "f")
    return value


def _project(obj: Any, fields: Iterable[str]) -> Optional[dict]:
    if obj is None:
        return None
    return {name: _normalize(getattr(obj, name, None)) for name in fields}


class FingerprintComputer:
    """Deterministic cache key over rendered lease content."""

    def __init__(self, length: int = 16, include_updated_at: bool = False):
        if not 8 <= length <= 64:
            raise ValueError("Fingerprint length must be between 8 and 64 hex chars")
        self.length = length
        self.include_updated_at = include_updated_at

    def projection(self, source: LeaseSource) -> dict:
        """Return the canonical projection the fingerprint is computed over."""
        signers = sorted(source.signers, key=lambda s: s.id or "")
        diagnostics = sorted(source.diagnostics, key=lambda d: d.id or "")

        lease = _project(source.lease, LEASE_FIELDS)
        if self.include_updated_at:
            lease["updated_at"] = _normalize(source.lease.updated_at)

        return {
            "lease": lease,
            "property": _project(source.property, PROPERTY_FIELDS),
            "owner": _project(source.owner, PROFILE_FIELDS),
            "owner_profile": _project(source.owner_profile, OWNER_PROFILE_FIELDS),
            "signer_count": len(signers),
            "signers": [
                {
                    **_project(signer, SIGNER_FIELDS),
                    "profile": _project(signer.profile, PROFILE_FIELDS),
                }
                for signer in signers
            ],
            "diagnostic_count": len(diagnostics),
            "diagnostics": [_project(doc, DIAGNOSTIC_FIELDS) for doc in diagnostics],
        }

    def compute(self, source: LeaseSource) -> str:
        """Compute the fingerprint of a lease source record."""
        canonical = json.dumps(
            self.projection(source),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[: self.length]
