"""Property, lease, signer and diagnostic document models."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from leasedoc_api.db.base import Base
from leasedoc_api.models.profile import new_uuid


class Property(Base):
    """Rented premises."""

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=new_uuid)
    owner_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    address = Column(String(500), nullable=True)
    postal_code = Column(String(10), nullable=True)
    city = Column(String(255), nullable=True)
    property_type = Column(String(50), nullable=True)  # appartement, maison, studio, ...
    living_area_m2 = Column(Numeric(8, 2), nullable=True)
    surface = Column(Numeric(8, 2), nullable=True)  # legacy, superseded by living_area_m2
    rooms = Column(Integer, nullable=True)
    floor = Column(Integer, nullable=True)
    floors_in_building = Column(Integer, nullable=True)
    has_elevator = Column(Boolean, nullable=True)
    construction_year = Column(Integer, nullable=True)
    ownership_regime = Column(String(50), nullable=True)  # mono_propriete, copropriete
    heating_type = Column(String(50), nullable=True)
    heating_energy = Column(String(50), nullable=True)
    hot_water_type = Column(String(50), nullable=True)
    hot_water_energy = Column(String(50), nullable=True)

    # Energy performance (DPE)
    energy_class = Column(String(1), nullable=True)
    energie = Column(String(1), nullable=True)  # legacy energy class
    ghg_class = Column(String(1), nullable=True)
    ges = Column(String(1), nullable=True)  # legacy GHG class
    dpe_date = Column(Date, nullable=True)
    dpe_valid_until = Column(Date, nullable=True)
    dpe_consumption = Column(Numeric(10, 2), nullable=True)
    dpe_emissions = Column(Numeric(10, 2), nullable=True)
    dpe_cost_min = Column(Numeric(10, 2), nullable=True)
    dpe_cost_max = Column(Numeric(10, 2), nullable=True)

    # Financial reference values used when the lease does not override them
    reference_rent = Column(Numeric(10, 2), nullable=True)
    monthly_charges = Column(Numeric(10, 2), nullable=True)

    # Equipment and annexes
    air_conditioning = Column(String(50), nullable=True)  # aucune, fixe, mobile
    equipped_kitchen = Column(Boolean, default=False, nullable=False)
    intercom = Column(Boolean, default=False, nullable=False)
    digicode = Column(Boolean, default=False, nullable=False)
    fiber = Column(Boolean, default=False, nullable=False)
    has_balcony = Column(Boolean, default=False, nullable=False)
    has_terrace = Column(Boolean, default=False, nullable=False)
    has_cellar = Column(Boolean, default=False, nullable=False)
    has_garden = Column(Boolean, default=False, nullable=False)
    has_parking = Column(Boolean, default=False, nullable=False)

    view_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    owner = relationship("Profile")
    leases = relationship("Lease", back_populates="property")


class Lease(Base):
    """Lease contract between a landlord and one or more tenants."""

    __tablename__ = "leases"

    id = Column(String(36), primary_key=True, default=new_uuid)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=True, index=True)
    lease_type = Column(String(50), nullable=True)  # nu, meuble, colocation, saisonnier, mobilite, etudiant
    status = Column(String(50), default="draft", nullable=False, index=True)  # draft, pending_signature, active, terminated
    rent = Column(Numeric(10, 2), nullable=True)
    charges = Column(Numeric(10, 2), nullable=True)
    deposit = Column(Numeric(10, 2), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    payment_day = Column(Integer, nullable=True)
    tenant_name_pending = Column(String(255), nullable=True)
    signing_date = Column(Date, nullable=True)

    # Access counters, not part of the contract
    view_count = Column(Integer, default=0, nullable=False)
    last_viewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    property = relationship("Property", back_populates="leases")
    signers = relationship("LeaseSigner", back_populates="lease", cascade="all, delete-orphan")


class LeaseSigner(Base):
    """Party expected to sign a lease."""

    __tablename__ = "lease_signers"

    id = Column(String(36), primary_key=True, default=new_uuid)
    lease_id = Column(String(36), ForeignKey("leases.id"), nullable=False, index=True)
    role = Column(String(50), nullable=False)  # proprietaire, locataire_principal, colocataire, garant
    signature_status = Column(String(50), default="pending", nullable=False)  # pending, signed, refused
    signed_at = Column(DateTime, nullable=True)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    invited_email = Column(String(255), nullable=True)
    invited_name = Column(String(255), nullable=True)
    proof_id = Column(String(100), nullable=True)
    document_hash = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    lease = relationship("Lease", back_populates="signers")
    profile = relationship("Profile")


class PropertyDocument(Base):
    """Uploaded document attached to a property or a lease (diagnostics, ...)."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_uuid)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=True, index=True)
    lease_id = Column(String(36), ForeignKey("leases.id"), nullable=True, index=True)
    doc_type = Column(String(100), nullable=False, index=True)  # dpe, crep, electricite, gaz, erp, ...
    storage_path = Column(Text, nullable=True)
    metadata_json = Column(JSON, nullable=True)
    expiry_date = Column(Date, nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
