"""Profile models for landlords, tenants and administrators."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from leasedoc_api.db.base import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    """Person behind a user account."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), nullable=True, unique=True, index=True)
    role = Column(String(50), nullable=False, default="tenant")  # owner, tenant, guarantor, admin
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    birth_date = Column(Date, nullable=True)
    birth_place = Column(String(255), nullable=True)
    nationality = Column(String(100), nullable=True)
    address = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    owner_profile = relationship("OwnerProfile", back_populates="profile", uselist=False)


class OwnerProfile(Base):
    """Legal identity of a landlord (private person or company)."""

    __tablename__ = "owner_profiles"

    profile_id = Column(String(36), ForeignKey("profiles.id"), primary_key=True)
    owner_type = Column(String(50), nullable=False, default="particulier")  # particulier, societe
    company_name = Column(String(255), nullable=True)  # raison sociale
    legal_form = Column(String(50), nullable=True)  # SCI, SARL, ...
    siret = Column(String(20), nullable=True)
    billing_address = Column(String(500), nullable=True)
    head_office_address = Column(String(500), nullable=True)
    representative_name = Column(String(255), nullable=True)
    representative_title = Column(String(100), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    profile = relationship("Profile", back_populates="owner_profile")
