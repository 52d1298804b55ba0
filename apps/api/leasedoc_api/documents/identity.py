"""Landlord identity resolution."""

from dataclasses import dataclass
from typing import Optional

from leasedoc_api.documents.chains import FieldChain, Source, is_present
from leasedoc_api.documents.source import LeaseSource


class IdentityResolutionError(Exception):
    """No owner data exists for the lease."""


@dataclass(frozen=True)
class PartyIdentity:
    """Canonical identity of a contracting party."""

    owner_type: str
    display_name: str
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    legal_form: str = ""
    siret: str = ""
    representative_name: str = ""
    representative_title: str = ""
    address: Optional[str] = None
    address_source: Optional[str] = None
    email: str = ""
    phone: str = ""

    @property
    def is_company(self) -> bool:
        return self.owner_type == "societe"


def _owner_profile_attr(name: str):
    return lambda s: getattr(s.owner_profile, name, None) if s.owner_profile else None


def _owner_attr(name: str):
    return lambda s: getattr(s.owner, name, None) if s.owner else None


def _full_property_address(source: LeaseSource) -> Optional[str]:
    prop = source.property
    if not prop or not is_present(prop.address):
        return None
    locality = " ".join(p for p in (prop.postal_code, prop.city) if is_present(p))
    return f"{prop.address}, {locality}" if locality else prop.address


ADDRESS_CHAIN = FieldChain(
    "landlord.address",
    Source("owner_profile.billing_address", _owner_profile_attr("billing_address")),
    Source("owner_profile.head_office_address", _owner_profile_attr("head_office_address")),
    Source("owner.address", _owner_attr("address")),
    Source("property.address", _full_property_address),
)


class IdentityResolver:
    """Resolve the landlord of a lease to a canonical party identity."""

    def resolve_landlord(self, source: LeaseSource) -> PartyIdentity:
        """Return the landlord identity.

        Companies are named by their registered name and represented by a
        named person ("Gérant" unless stated otherwise).

        Raises:
            IdentityResolutionError: neither the owner profile nor its legal
                profile could be loaded
        """
        owner = source.owner
        legal = source.owner_profile
        if owner is None and legal is None:
            raise IdentityResolutionError(f"No owner data for lease {source.lease_id}")

        first_name = (owner.first_name or "") if owner else ""
        last_name = (owner.last_name or "") if owner else ""
        person_name = f"{first_name} {last_name}".strip()
        owner_type = "societe" if legal and legal.owner_type == "societe" else "particulier"

        address = ADDRESS_CHAIN.resolve(source)

        if owner_type == "societe":
            company_name = legal.company_name or ""
            return PartyIdentity(
                owner_type=owner_type,
                display_name=company_name or person_name,
                first_name=first_name,
                last_name=last_name,
                company_name=company_name,
                legal_form=legal.legal_form or "SCI",
                siret=legal.siret or "",
                representative_name=legal.representative_name or person_name,
                representative_title=legal.representative_title or "Gérant",
                address=address.value,
                address_source=address.source_name,
                email=(owner.email or "") if owner else "",
                phone=(owner.phone or "") if owner else "",
            )

        return PartyIdentity(
            owner_type=owner_type,
            display_name=person_name,
            first_name=first_name,
            last_name=last_name,
            address=address.value,
            address_source=address.source_name,
            email=(owner.email or "") if owner else "",
            phone=(owner.phone or "") if owner else "",
        )
