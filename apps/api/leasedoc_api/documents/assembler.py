"""Lease document assembly.

Maps a ``LeaseSource`` onto the renderer's ``LeaseDocumentModel``. Assembly is
split into named steps; each returns an explicit ``StepOutcome``. Optional
steps that are skipped or fail fall back to placeholder sections, required
steps abort with ``AssemblyError``. Field precedence is expressed with
``FieldChain``s so that every value records the source it came from.

Assembly never reads the clock: the same source always yields the same model.
"""

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from leasedoc_api.documents.chains import FieldChain, Resolution, Source, is_present
from leasedoc_api.documents.errors import AssemblyError
from leasedoc_api.documents.identity import IdentityResolutionError, IdentityResolver
from leasedoc_api.documents.schema import (
    PENDING_TENANT_PLACEHOLDER,
    TENANT_PLACEHOLDER,
    DiagnosticEntry,
    DiagnosticsSection,
    LandlordSection,
    LeaseDocumentModel,
    PremisesSection,
    SignatureBlock,
    SignaturesSection,
    StepReport,
    TenantSection,
    TermsSection,
)
from leasedoc_api.documents.source import LeaseSource
from leasedoc_api.documents.words import amount_in_words

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "@a-definir"

TENANT_ROLES = ("locataire", "tenant", "principal", "colocataire")
LANDLORD_ROLES = ("proprietaire", "owner", "bailleur")
GUARANTOR_ROLES = ("garant", "caution", "guarantor")

DPE_DOCUMENT_TYPES = ("dpe", "diagnostic_performance")

DIAGNOSTIC_LABELS = {
    "dpe": "Diagnostic de performance énergétique",
    "diagnostic_performance": "Diagnostic de performance énergétique",
    "crep": "Constat de risque d'exposition au plomb",
    "plomb": "Constat de risque d'exposition au plomb",
    "electricite": "État de l'installation intérieure d'électricité",
    "gaz": "État de l'installation intérieure de gaz",
    "erp": "État des risques et pollutions",
    "risques": "État des risques et pollutions",
    "amiante": "État d'amiante",
    "bruit": "Diagnostic bruit",
}

# Months per lease type when the landlord is a private person
DURATION_MONTHS = {
    "meuble": 12,
    "nu": 36,
    "mobilite": 10,
    "etudiant": 9,
    "colocation": 12,
}
COMPANY_DURATION_MONTHS = 72

# Legal deposit ceiling, in months of rent excluding charges
DEPOSIT_RENT_MULTIPLIER = {
    "nu": Decimal("1"),
    "etudiant": Decimal("1"),
    "meuble": Decimal("2"),
    "colocation": Decimal("2"),
    "saisonnier": Decimal("2"),
    "mobilite": Decimal("0"),
}

TACIT_RENEWAL_TYPES = ("nu", "meuble")
DEFAULT_PAYMENT_DAY = 5
ADVANCE_PAYMENT_LAST_DAY = 10


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    """Result of one assembly step."""

    name: str
    status: StepStatus
    value: Any = None
    reason: Optional[str] = None
    caller_fixable: bool = False

    @classmethod
    def ok(cls, name: str, value: Any) -> "StepOutcome":
        return cls(name=name, status=StepStatus.OK, value=value)

    @classmethod
    def skipped(cls, name: str, reason: str) -> "StepOutcome":
        return cls(name=name, status=StepStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, name: str, reason: str, caller_fixable: bool = False) -> "StepOutcome":
        return cls(name=name, status=StepStatus.FAILED, reason=reason, caller_fixable=caller_fixable)


@dataclass(frozen=True)
class Step:
    name: str
    required: bool
    run: Callable[[LeaseSource, Dict[str, str]], StepOutcome]
    fallback: Optional[Callable[[LeaseSource], Any]] = None


# ---------------------------------------------------------------------------
# Derived rules
# ---------------------------------------------------------------------------


def construction_period(year: Optional[int]) -> Optional[str]:
    """Map a construction year to the regulatory period."""
    if not year:
        return None
    if year < 1949:
        return "avant_1949"
    if year <= 1974:
        return "1949_1974"
    if year <= 1989:
        return "1975_1989"
    if year <= 2005:
        return "1990_2005"
    return "apres_2005"


def duration_months(
    lease_type: Optional[str],
    landlord_type: Optional[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> int:
    """Default lease duration in months."""
    if lease_type == "saisonnier":
        if start_date and end_date:
            days = abs((end_date - start_date).days)
            return max(1, math.ceil(days / 30))
        return 1
    if lease_type == "nu" or lease_type not in DURATION_MONTHS:
        return COMPANY_DURATION_MONTHS if landlord_type == "societe" else 36
    return DURATION_MONTHS[lease_type]


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def legal_max_deposit(lease_type: Optional[str], rent: Decimal) -> Decimal:
    return rent * DEPOSIT_RENT_MULTIPLIER.get(lease_type or "", Decimal("1"))


def is_placeholder_email(email: Optional[str]) -> bool:
    return not is_present(email) or PLACEHOLDER_EMAIL_DOMAIN in email


def _role_matches(signer, roles) -> bool:
    role = (signer.role or "").lower()
    return any(candidate in role for candidate in roles)


def sort_signers(signers: List[Any]) -> List[Any]:
    """Most "real" signers first: signed, then linked to a profile, then with a real email."""
    return sorted(
        signers,
        key=lambda s: (
            s.signature_status != "signed",
            s.profile_id is None,
            is_placeholder_email(s.invited_email),
            s.id or "",
        ),
    )


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _as_decimal(value: Any) -> Optional[Decimal]:
    if not is_present(value):
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return None


def _text(value: Any) -> str:
    return str(value).strip() if is_present(value) else ""


def _record(sources: Dict[str, str], key: str, resolution: Resolution) -> Any:
    if resolution.resolved:
        sources[key] = resolution.source_name
    return resolution.value


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------


def _lease(name: str) -> Source:
    return Source(f"lease.{name}", lambda s: getattr(s.lease, name, None))


def _property(name: str) -> Source:
    return Source(f"property.{name}", lambda s: getattr(s.property, name, None))


def _positive(source: Source) -> Source:
    def read(context):
        value = source.read(context)
        return value if value is not None and value > 0 else None

    return Source(source.name, read)


def _latest_dpe(source: LeaseSource):
    dpe_docs = [d for d in source.diagnostics if d.doc_type in DPE_DOCUMENT_TYPES]
    return dpe_docs[-1] if dpe_docs else None


def _document_metadata(doc) -> dict:
    """Metadata of a diagnostic document; non-object JSON is ignored."""
    metadata = doc.metadata_json if doc is not None else None
    return metadata if isinstance(metadata, dict) else {}


def _dpe_metadata(*keys: str) -> Callable[[LeaseSource], Any]:
    def read(source: LeaseSource):
        doc = _latest_dpe(source)
        metadata = _document_metadata(doc)
        for key in keys:
            if is_present(metadata.get(key)):
                return metadata[key]
        return None

    return read


RENT_CHAIN = FieldChain("terms.rent", _lease("rent"), _property("reference_rent"))
CHARGES_CHAIN = FieldChain(
    "terms.charges", _lease("charges"), _property("monthly_charges"), default=Decimal("0")
)
DEPOSIT_CHAIN = FieldChain("terms.deposit", _positive(_lease("deposit")))
PAYMENT_DAY_CHAIN = FieldChain(
    "terms.payment_day", _positive(_lease("payment_day")), default=DEFAULT_PAYMENT_DAY
)
LEASE_TYPE_CHAIN = FieldChain("terms.lease_type", _lease("lease_type"), default="nu")

LIVING_AREA_CHAIN = FieldChain(
    "premises.living_area_m2",
    _positive(_property("living_area_m2")),
    _positive(_property("surface")),
)

ENERGY_CLASS_CHAIN = FieldChain(
    "diagnostics.energy_class",
    Source("dpe_document.energy_class", _dpe_metadata("energy_class", "classe_energie")),
    _property("energy_class"),
    _property("energie"),
)
GHG_CLASS_CHAIN = FieldChain(
    "diagnostics.ghg_class",
    Source("dpe_document.ghg_class", _dpe_metadata("ghg_class", "classe_ges", "classe_climat")),
    _property("ghg_class"),
    _property("ges"),
)
DPE_DATE_CHAIN = FieldChain(
    "diagnostics.dpe_date",
    Source("dpe_document.date", _dpe_metadata("date_realisation", "performed_on")),
    _property("dpe_date"),
)
DPE_VALID_UNTIL_CHAIN = FieldChain(
    "diagnostics.dpe_valid_until",
    Source("dpe_document.valid_until", _dpe_metadata("date_validite", "valid_until")),
    Source("dpe_document.expiry_date", lambda s: getattr(_latest_dpe(s), "expiry_date", None)),
    _property("dpe_valid_until"),
)
DPE_CONSUMPTION_CHAIN = FieldChain(
    "diagnostics.consumption",
    Source("dpe_document.consumption", _dpe_metadata("consommation", "consumption")),
    _property("dpe_consumption"),
)
DPE_EMISSIONS_CHAIN = FieldChain(
    "diagnostics.emissions",
    Source("dpe_document.emissions", _dpe_metadata("emissions_ges", "emissions")),
    _property("dpe_emissions"),
)
DPE_COST_MIN_CHAIN = FieldChain(
    "diagnostics.cost_min",
    Source("dpe_document.cost_min", _dpe_metadata("estimation_cout_min", "cost_min")),
    _property("dpe_cost_min"),
)
DPE_COST_MAX_CHAIN = FieldChain(
    "diagnostics.cost_max",
    Source("dpe_document.cost_max", _dpe_metadata("estimation_cout_max", "cost_max")),
    _property("dpe_cost_max"),
)


def _split_first(name: Optional[str]) -> Optional[str]:
    return name.strip().split(" ")[0] if is_present(name) else None


def _split_last(name: Optional[str]) -> Optional[str]:
    if not is_present(name):
        return None
    parts = name.strip().split(" ")
    return " ".join(parts[1:]) or parts[0]


def _email_local_part(email: Optional[str]) -> Optional[str]:
    if is_placeholder_email(email):
        return None
    return email.split("@")[0]


# Context for tenant chains: (signer, lease)
TENANT_LAST_NAME_CHAIN = FieldChain(
    "tenant.last_name",
    Source("profile.last_name", lambda c: getattr(c[0].profile, "last_name", None) if c[0].profile else None),
    Source("signer.invited_name", lambda c: _split_last(c[0].invited_name)),
    Source("signer.invited_email", lambda c: _email_local_part(c[0].invited_email)),
    Source("lease.tenant_name_pending", lambda c: c[1].tenant_name_pending),
    default=TENANT_PLACEHOLDER,
    default_name="placeholder",
)
TENANT_FIRST_NAME_CHAIN = FieldChain(
    "tenant.first_name",
    Source("profile.first_name", lambda c: getattr(c[0].profile, "first_name", None) if c[0].profile else None),
    Source("signer.invited_name", lambda c: _split_first(c[0].invited_name)),
)
TENANT_EMAIL_CHAIN = FieldChain(
    "tenant.email",
    Source("profile.email", lambda c: getattr(c[0].profile, "email", None) if c[0].profile else None),
    Source("signer.invited_email", lambda c: None if is_placeholder_email(c[0].invited_email) else c[0].invited_email),
)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _landlord_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    try:
        identity = IdentityResolver().resolve_landlord(source)
    except IdentityResolutionError as e:
        return StepOutcome.failed("landlord", str(e))

    if not is_present(identity.display_name):
        return StepOutcome.skipped("landlord", "Owner has no name")

    section = LandlordSection(
        owner_type=identity.owner_type,
        display_name=identity.display_name,
        first_name=identity.first_name,
        last_name=identity.last_name,
        company_name=identity.company_name,
        legal_form=identity.legal_form,
        siret=identity.siret,
        representative_name=identity.representative_name,
        representative_title=identity.representative_title,
        email=identity.email,
        phone=identity.phone,
        is_placeholder=False,
    )
    if identity.address:
        section.address = identity.address
        sources["landlord.address"] = identity.address_source
    return StepOutcome.ok("landlord", section)


def _tenant_section(signer, source: LeaseSource, sources: Dict[str, str], index: int) -> TenantSection:
    context = (signer, source.lease)
    last_name = _record(sources, f"tenants[{index}].last_name", TENANT_LAST_NAME_CHAIN.resolve(context))
    first_name = _record(sources, f"tenants[{index}].first_name", TENANT_FIRST_NAME_CHAIN.resolve(context)) or ""
    email = TENANT_EMAIL_CHAIN.resolve(context).value or ""
    profile = signer.profile

    return TenantSection(
        role=signer.role or "locataire_principal",
        display_name=f"{first_name} {last_name}".strip(),
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=_text(profile.phone) if profile else "",
        birth_date=profile.birth_date if profile else None,
        birth_place=_text(profile.birth_place) if profile else "",
        nationality=_text(profile.nationality) if profile and is_present(profile.nationality) else "Française",
        address=_text(profile.address) if profile else "",
        is_placeholder=last_name == TENANT_PLACEHOLDER,
    )


def _tenants_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    tenants = [s for s in sort_signers(source.signers) if _role_matches(s, TENANT_ROLES)]
    if not tenants:
        return StepOutcome.skipped("tenants", "Lease has no tenant signer")
    return StepOutcome.ok(
        "tenants",
        [_tenant_section(signer, source, sources, i) for i, signer in enumerate(tenants)],
    )


def _tenants_fallback(source: LeaseSource) -> List[TenantSection]:
    pending = source.lease.tenant_name_pending
    name = pending.strip() if is_present(pending) else PENDING_TENANT_PLACEHOLDER
    return [TenantSection(display_name=name, last_name=name, is_placeholder=True)]


def _equipment(prop) -> List[str]:
    equipment = []
    if is_present(prop.air_conditioning) and prop.air_conditioning != "aucune":
        equipment.append(f"Climatisation ({prop.air_conditioning})")
    if prop.equipped_kitchen:
        equipment.append("Cuisine équipée")
    if prop.intercom:
        equipment.append("Interphone")
    if prop.digicode:
        equipment.append("Digicode")
    if prop.fiber:
        equipment.append("Fibre optique")
    return equipment


def _annexes(prop) -> List[str]:
    flags = (
        ("has_balcony", "Balcon"),
        ("has_terrace", "Terrasse"),
        ("has_cellar", "Cave"),
        ("has_garden", "Jardin"),
        ("has_parking", "Parking"),
    )
    return [label for attr, label in flags if getattr(prop, attr, False)]


def _premises_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    prop = source.property
    if prop is None:
        return StepOutcome.failed("premises", "Lease has no property")

    living_area = _record(sources, "premises.living_area_m2", LIVING_AREA_CHAIN.resolve(source))
    return StepOutcome.ok(
        "premises",
        PremisesSection(
            address=_text(prop.address),
            postal_code=_text(prop.postal_code),
            city=_text(prop.city),
            property_type=_text(prop.property_type) or "appartement",
            living_area_m2=living_area,
            rooms=prop.rooms if prop.rooms and prop.rooms > 0 else 1,
            floor=prop.floor,
            floors_in_building=prop.floors_in_building,
            has_elevator=prop.has_elevator,
            construction_period=construction_period(prop.construction_year),
            ownership_regime=_text(prop.ownership_regime) or "mono_propriete",
            heating_type=_text(prop.heating_type),
            heating_energy=_text(prop.heating_energy),
            hot_water_type=_text(prop.hot_water_type),
            hot_water_energy=_text(prop.hot_water_energy),
            equipment=_equipment(prop),
            annexes=_annexes(prop),
        ),
    )


def _landlord_type(source: LeaseSource) -> str:
    legal = source.owner_profile
    return "societe" if legal and legal.owner_type == "societe" else "particulier"


def _terms_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    lease = source.lease

    rent = _record(sources, "terms.rent", RENT_CHAIN.resolve(source))
    if rent is None:
        return StepOutcome.failed(
            "terms",
            "Rent is missing on both the lease and the property",
            caller_fixable=True,
        )
    rent = Decimal(rent)
    charges = Decimal(_record(sources, "terms.charges", CHARGES_CHAIN.resolve(source)))
    lease_type = _record(sources, "terms.lease_type", LEASE_TYPE_CHAIN.resolve(source))

    deposit = _record(sources, "terms.deposit", DEPOSIT_CHAIN.resolve(source))
    if deposit is None:
        deposit = legal_max_deposit(lease_type, rent)
        sources["terms.deposit"] = "legal_maximum"
    deposit = Decimal(deposit)

    months = duration_months(lease_type, _landlord_type(source), lease.start_date, lease.end_date)
    if lease.start_date:
        end_date = add_months(lease.start_date, months)
        sources["terms.end_date"] = "computed"
    else:
        end_date = lease.end_date
        if end_date:
            sources["terms.end_date"] = "lease.end_date"

    payment_day = int(_record(sources, "terms.payment_day", PAYMENT_DAY_CHAIN.resolve(source)))
    total = rent + charges

    return StepOutcome.ok(
        "terms",
        TermsSection(
            lease_type=lease_type,
            start_date=lease.start_date,
            end_date=end_date,
            duration_months=months,
            rent=rent,
            rent_in_words=amount_in_words(rent),
            charges=charges,
            total_rent=total,
            total_rent_in_words=amount_in_words(total),
            deposit=deposit,
            deposit_in_words=amount_in_words(deposit),
            payment_day=payment_day,
            payment_in_advance=payment_day <= ADVANCE_PAYMENT_LAST_DAY,
            tacit_renewal=lease_type in TACIT_RENEWAL_TYPES,
        ),
    )


def _diagnostic_entry(doc) -> DiagnosticEntry:
    metadata = _document_metadata(doc)
    return DiagnosticEntry(
        doc_type=doc.doc_type,
        label=DIAGNOSTIC_LABELS.get(doc.doc_type, doc.doc_type),
        performed_on=_as_date(metadata.get("date_realisation") or metadata.get("performed_on")),
        valid_until=_as_date(metadata.get("date_validite")) or _as_date(doc.expiry_date),
        result=_text(metadata.get("resultat") or metadata.get("result")),
    )


def _diagnostics_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    def resolve(key: str, chain: FieldChain):
        return _record(sources, key, chain.resolve(source))

    energy_class = resolve("diagnostics.energy_class", ENERGY_CLASS_CHAIN)
    ghg_class = resolve("diagnostics.ghg_class", GHG_CLASS_CHAIN)
    documents = [_diagnostic_entry(doc) for doc in source.diagnostics]

    if energy_class is None and ghg_class is None and not documents:
        return StepOutcome.skipped("diagnostics", "No energy performance data or diagnostic documents")

    return StepOutcome.ok(
        "diagnostics",
        DiagnosticsSection(
            energy_class=_text(energy_class).upper() or None,
            ghg_class=_text(ghg_class).upper() or None,
            dpe_date=_as_date(resolve("diagnostics.dpe_date", DPE_DATE_CHAIN)),
            dpe_valid_until=_as_date(resolve("diagnostics.dpe_valid_until", DPE_VALID_UNTIL_CHAIN)),
            consumption=_as_decimal(resolve("diagnostics.consumption", DPE_CONSUMPTION_CHAIN)),
            emissions=_as_decimal(resolve("diagnostics.emissions", DPE_EMISSIONS_CHAIN)),
            cost_min=_as_decimal(resolve("diagnostics.cost_min", DPE_COST_MIN_CHAIN)),
            cost_max=_as_decimal(resolve("diagnostics.cost_max", DPE_COST_MAX_CHAIN)),
            documents=documents,
        ),
    )


def _signature_block(signer, role: str) -> SignatureBlock:
    profile = signer.profile
    if profile:
        name = f"{profile.first_name or ''} {profile.last_name or ''}".strip()
    else:
        name = _text(signer.invited_name)
    return SignatureBlock(
        role=role,
        party_name=name,
        status=signer.signature_status or "pending",
        signed_at=signer.signed_at,
        proof_id=signer.proof_id,
        document_hash=signer.document_hash,
    )


def _signatures_step(source: LeaseSource, sources: Dict[str, str]) -> StepOutcome:
    signers = sort_signers(source.signers)
    if not signers:
        return StepOutcome.skipped("signatures", "Lease has no signers")

    def first(roles):
        return next((s for s in signers if _role_matches(s, roles)), None)

    landlord = first(LANDLORD_ROLES)
    tenant = first(TENANT_ROLES)
    guarantor = first(GUARANTOR_ROLES)

    section = SignaturesSection(
        landlord=_signature_block(landlord, "bailleur") if landlord else SignatureBlock(role="bailleur"),
        tenant=_signature_block(tenant, "locataire") if tenant else SignatureBlock(role="locataire"),
        guarantor=_signature_block(guarantor, "garant") if guarantor else None,
    )
    section.all_signed = bool(signers) and all(s.signature_status == "signed" for s in signers)
    return StepOutcome.ok("signatures", section)


STEPS = (
    Step("landlord", required=False, run=_landlord_step, fallback=lambda s: LandlordSection()),
    Step("tenants", required=False, run=_tenants_step, fallback=_tenants_fallback),
    Step("premises", required=True, run=_premises_step),
    Step("terms", required=True, run=_terms_step),
    Step("diagnostics", required=False, run=_diagnostics_step, fallback=lambda s: DiagnosticsSection()),
    Step("signatures", required=False, run=_signatures_step, fallback=lambda s: SignaturesSection()),
)


class DocumentAssembler:
    """Build the renderer input model from a lease source record."""

    def __init__(self, steps=STEPS):
        self.steps = steps

    def assemble(self, source: LeaseSource) -> LeaseDocumentModel:
        """Assemble the lease document model.

        Raises:
            AssemblyError: a required step failed
        """
        sections: Dict[str, Any] = {}
        reports: List[StepReport] = []
        sources: Dict[str, str] = {}

        for step in self.steps:
            outcome = step.run(source, sources)
            reports.append(StepReport(name=step.name, status=outcome.status.value, reason=outcome.reason))

            if outcome.status is StepStatus.OK:
                sections[step.name] = outcome.value
                continue

            if step.required:
                logger.warning(
                    f"Required assembly step {step.name} {outcome.status.value}: {outcome.reason}",
                    extra={"lease_id": source.lease_id, "step": step.name},
                )
                raise AssemblyError(outcome.reason, caller_fixable=outcome.caller_fixable)

            logger.info(
                f"Optional assembly step {step.name} {outcome.status.value}, using placeholder",
                extra={"lease_id": source.lease_id, "step": step.name, "reason": outcome.reason},
            )
            sections[step.name] = step.fallback(source)

        lease = source.lease
        signing_date = lease.signing_date or _as_date(lease.created_at)
        return LeaseDocumentModel(
            reference=lease.id[:8].upper() if lease.id else "DRAFT",
            lease_id=lease.id,
            status=lease.status,
            signing_place=_text(source.property.city) or "...",
            signing_date=signing_date,
            steps=reports,
            field_sources=sources,
            **sections,
        )
