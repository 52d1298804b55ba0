"""Seed data for development and testing."""

from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from leasedoc_api.models import (
    Lease,
    LeaseSigner,
    OwnerProfile,
    Profile,
    Property,
    PropertyDocument,
)

DEMO_OWNER_EMAIL = "proprietaire@example.com"
DEMO_TENANT_EMAIL = "locataire@example.com"
DEMO_ADMIN_EMAIL = "admin@example.com"


def _get_or_create_profile(db: Session, email: str, **fields) -> Profile:
    profile = db.query(Profile).filter(Profile.email == email).first()
    if not profile:
        profile = Profile(email=email, **fields)
        db.add(profile)
        db.flush()
    return profile


def seed_profiles(db: Session) -> dict:
    """Seed demo owner, tenant and administrator."""
    owner = _get_or_create_profile(
        db,
        DEMO_OWNER_EMAIL,
        role="owner",
        first_name="Claire",
        last_name="Martin",
        phone="+33 6 12 34 56 78",
        address="12 rue des Lilas, 69003 Lyon",
    )
    if not db.query(OwnerProfile).filter(OwnerProfile.profile_id == owner.id).first():
        db.add(OwnerProfile(profile_id=owner.id, owner_type="particulier"))

    tenant = _get_or_create_profile(
        db,
        DEMO_TENANT_EMAIL,
        role="tenant",
        first_name="Lucas",
        last_name="Bernard",
        birth_date=date(1994, 3, 14),
        birth_place="Grenoble",
        nationality="Française",
    )
    admin = _get_or_create_profile(db, DEMO_ADMIN_EMAIL, role="admin", first_name="Admin", last_name="Plateforme")
    db.commit()
    print(f"✓ Profiles: owner={owner.id} tenant={tenant.id} admin={admin.id}")
    return {"owner": owner, "tenant": tenant, "admin": admin}


def seed_lease(db: Session, owner: Profile, tenant: Profile) -> Lease:
    """Seed a demo property with a draft lease and its signers."""
    prop = db.query(Property).filter(Property.owner_id == owner.id).first()
    if not prop:
        prop = Property(
            owner_id=owner.id,
            address="8 quai Saint-Vincent",
            postal_code="69001",
            city="Lyon",
            property_type="appartement",
            living_area_m2=Decimal("48.50"),
            rooms=2,
            floor=3,
            floors_in_building=5,
            has_elevator=True,
            construction_year=1932,
            ownership_regime="copropriete",
            heating_type="individuel",
            heating_energy="gaz",
            hot_water_type="individuel",
            hot_water_energy="gaz",
            energy_class="D",
            ghg_class="E",
            reference_rent=Decimal("850.00"),
            monthly_charges=Decimal("60.00"),
            equipped_kitchen=True,
            intercom=True,
            fiber=True,
            has_cellar=True,
        )
        db.add(prop)
        db.flush()
        db.add(
            PropertyDocument(
                property_id=prop.id,
                doc_type="dpe",
                metadata_json={"classe_energie": "D", "classe_ges": "E", "date_realisation": "2024-02-01"},
            )
        )

    lease = db.query(Lease).filter(Lease.property_id == prop.id).first()
    if not lease:
        lease = Lease(
            property_id=prop.id,
            lease_type="nu",
            status="draft",
            rent=Decimal("850.00"),
            charges=Decimal("60.00"),
            start_date=date(2025, 9, 1),
            payment_day=5,
        )
        db.add(lease)
        db.flush()
        db.add(LeaseSigner(lease_id=lease.id, role="proprietaire", profile_id=owner.id))
        db.add(
            LeaseSigner(
                lease_id=lease.id,
                role="locataire_principal",
                profile_id=tenant.id,
                invited_email=tenant.email,
                invited_name="Lucas Bernard",
            )
        )
        db.commit()
        print(f"✓ Created demo lease: {lease.id}")
    else:
        print(f"✓ Demo lease already exists: {lease.id}")
    return lease


def seed_all(db: Session) -> Lease:
    """Seed all initial data."""
    profiles = seed_profiles(db)
    return seed_lease(db, profiles["owner"], profiles["tenant"])
