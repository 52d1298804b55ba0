"""Lease document model consumed by the renderer.

Sections mirror the structure of a French residential lease ("bail"):
parties, premises, financial terms, diagnostics and signatures. Every field has
a well-defined empty value so that a lease with missing related records still
renders with blanks instead of failing.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

LANDLORD_PLACEHOLDER = "[NOM PROPRIÉTAIRE]"
LANDLORD_ADDRESS_PLACEHOLDER = "[ADRESSE PROPRIÉTAIRE]"
TENANT_PLACEHOLDER = "[NOM LOCATAIRE]"
PENDING_TENANT_PLACEHOLDER = "[EN ATTENTE DE LOCATAIRE]"


class LandlordSection(BaseModel):
    """Landlord ("bailleur"), private person or company."""

    owner_type: Literal["particulier", "societe"] = "particulier"
    display_name: str = LANDLORD_PLACEHOLDER
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    legal_form: str = ""
    siret: str = ""
    representative_name: str = ""
    representative_title: str = ""
    address: str = LANDLORD_ADDRESS_PLACEHOLDER
    email: str = ""
    phone: str = ""
    is_placeholder: bool = True


class TenantSection(BaseModel):
    """One tenant ("locataire")."""

    role: str = "locataire_principal"
    display_name: str = TENANT_PLACEHOLDER
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    birth_date: Optional[date] = None
    birth_place: str = ""
    nationality: str = "Française"
    address: str = ""
    is_placeholder: bool = True


class PremisesSection(BaseModel):
    """Rented premises ("logement")."""

    address: str = ""
    postal_code: str = ""
    city: str = ""
    property_type: str = "appartement"
    living_area_m2: Optional[Decimal] = None
    rooms: int = 1
    floor: Optional[int] = None
    floors_in_building: Optional[int] = None
    has_elevator: Optional[bool] = None
    construction_period: Optional[str] = None  # avant_1949, 1949_1974, 1975_1989, 1990_2005, apres_2005
    ownership_regime: str = "mono_propriete"
    heating_type: str = ""
    heating_energy: str = ""
    hot_water_type: str = ""
    hot_water_energy: str = ""
    equipment: List[str] = Field(default_factory=list)
    annexes: List[str] = Field(default_factory=list)


class TermsSection(BaseModel):
    """Duration and financial terms ("conditions")."""

    lease_type: str = "nu"
    usage: str = "habitation_principale"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration_months: int
    rent: Decimal
    rent_in_words: str
    charges: Decimal = Decimal("0")
    charges_type: str = "provisions"
    total_rent: Decimal
    total_rent_in_words: str
    deposit: Decimal
    deposit_in_words: str
    payment_method: str = "virement"
    payment_frequency: str = "mensuelle"
    payment_day: int = 5
    payment_in_advance: bool = True
    tacit_renewal: bool = False
    rent_revision_allowed: bool = True
    revision_index: str = "IRL"


class DiagnosticEntry(BaseModel):
    """Technical diagnostic annexed to the lease."""

    doc_type: str
    label: str
    performed_on: Optional[date] = None
    valid_until: Optional[date] = None
    result: str = ""


class DiagnosticsSection(BaseModel):
    """Energy performance (DPE) and annexed diagnostics."""

    energy_class: Optional[str] = None
    ghg_class: Optional[str] = None
    dpe_date: Optional[date] = None
    dpe_valid_until: Optional[date] = None
    consumption: Optional[Decimal] = None
    emissions: Optional[Decimal] = None
    cost_min: Optional[Decimal] = None
    cost_max: Optional[Decimal] = None
    documents: List[DiagnosticEntry] = Field(default_factory=list)


class SignatureBlock(BaseModel):
    """Signature status of one party."""

    role: str
    party_name: str = ""
    status: str = "pending"  # pending, signed, refused
    signed_at: Optional[datetime] = None
    proof_id: Optional[str] = None
    document_hash: Optional[str] = None

    @property
    def signed(self) -> bool:
        return self.status == "signed"


class SignaturesSection(BaseModel):
    landlord: SignatureBlock = Field(default_factory=lambda: SignatureBlock(role="bailleur"))
    tenant: SignatureBlock = Field(default_factory=lambda: SignatureBlock(role="locataire"))
    guarantor: Optional[SignatureBlock] = None
    all_signed: bool = False


class StepReport(BaseModel):
    """Outcome of one assembly step, kept for diagnostics."""

    name: str
    status: Literal["ok", "skipped", "failed"]
    reason: Optional[str] = None


class LeaseDocumentModel(BaseModel):
    """Complete renderer input for a lease document."""

    reference: str
    lease_id: str
    status: str
    signing_place: str = "..."
    signing_date: Optional[date] = None
    landlord: LandlordSection
    tenants: List[TenantSection]
    premises: PremisesSection
    terms: TermsSection
    diagnostics: DiagnosticsSection
    signatures: SignaturesSection
    steps: List[StepReport] = Field(default_factory=list)
    field_sources: Dict[str, str] = Field(default_factory=dict)  # "terms.rent" -> "lease.rent"
