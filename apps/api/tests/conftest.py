"""Pytest configuration and fixtures."""

import os

# Must be set before leasedoc_api builds its settings and engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RENDER_LOCK_BACKEND", "local")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "plain")

import threading
import time
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from leasedoc_api.audit.service import AuditTrail
from leasedoc_api.db.base import Base
from leasedoc_api.documents.errors import SignedUrlError, StorageUploadError
from leasedoc_api.documents.locks import LocalRenderLock
from leasedoc_api.documents.orchestrator import DocumentRetrievalService
from leasedoc_api.documents.renderer import LeaseDocumentRenderer, RenderedDocument
from leasedoc_api.models import (
    Lease,
    LeaseSigner,
    OwnerProfile,
    Profile,
    Property,
    PropertyDocument,
)
from leasedoc_api.settings import Settings
from leasedoc_api.storage.service import StorageService


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so audit writes and worker threads get their own connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'leasedoc-test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeStorage:
    """In-memory stand-in for the MinIO-backed StorageService."""

    build_object_key = staticmethod(StorageService.build_object_key)

    def __init__(self):
        self.blobs: dict = {}
        self.uploads: list = []
        self.signed_url_available = True
        self.upload_available = True
        self._lock = threading.Lock()

    def upload(self, object_key, data, content_type="application/octet-stream", cache_control=None, overwrite=True):
        if not self.upload_available:
            raise StorageUploadError()
        with self._lock:
            if not overwrite and object_key in self.blobs:
                raise StorageUploadError(f"Object already exists: {object_key}")
            self.blobs[object_key] = bytes(data)
            self.uploads.append(
                {"key": object_key, "content_type": content_type, "cache_control": cache_control}
            )
        return object_key

    def get_object(self, object_key):
        if object_key not in self.blobs:
            raise FileNotFoundError(f"Object not found: {object_key}")
        return self.blobs[object_key]

    def signed_url(self, object_key, ttl_seconds=3600):
        if not self.signed_url_available:
            raise SignedUrlError()
        return f"https://storage.test/lease-documents/{object_key}?X-Amz-Expires={ttl_seconds}"

    def object_exists(self, object_key):
        return object_key in self.blobs


class CountingRenderer(LeaseDocumentRenderer):
    """Renderer producing deterministic bytes from the model, counting renders."""

    def __init__(self, delay: float = 0.0):
        super().__init__(timeout_seconds=10, pdf_service_url="")
        self.calls = 0
        self.delay = delay
        self._lock = threading.Lock()

    def render(self, doc) -> RenderedDocument:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return RenderedDocument(
            content=b"%PDF-1.4\n" + doc.model_dump_json().encode("utf-8"),
            content_type="application/pdf",
            filename=self.filename(doc),
        )


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def renderer_class():
    return CountingRenderer


@pytest.fixture
def renderer():
    return CountingRenderer()


@pytest.fixture
def audit(session_factory):
    return AuditTrail(session_factory=session_factory)


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        render_lock_backend="local",
        render_lock_blocking_timeout_seconds=10,
        document_signed_url_ttl=3600,
    )


@pytest.fixture
def service_factory(storage, renderer, audit, test_settings):
    """Build a retrieval service bound to the given session."""
    render_lock = LocalRenderLock(blocking_timeout=10)

    def build(session: Session, **overrides) -> DocumentRetrievalService:
        options = {
            "storage": storage,
            "renderer": renderer,
            "audit": audit,
            "render_lock": render_lock,
            "settings": test_settings,
        }
        options.update(overrides)
        return DocumentRetrievalService(session, **options)

    return build


@pytest.fixture
def service(db, service_factory):
    return service_factory(db)


def _profile(db: Session, email: str, role: str, first_name: Optional[str], last_name: Optional[str], **fields) -> Profile:
    profile = Profile(email=email, role=role, first_name=first_name, last_name=last_name, **fields)
    db.add(profile)
    db.flush()
    return profile


@pytest.fixture
def make_lease(db):
    """Factory for a lease with its property, owner and signers."""
    counter = {"n": 0}

    def make(
        rent=Decimal("850.00"),
        charges=Decimal("60.00"),
        deposit=None,
        lease_type="nu",
        start_date=date(2025, 9, 1),
        owner_type="particulier",
        with_tenant=True,
        with_dpe=True,
        **property_fields,
    ) -> SimpleNamespace:
        counter["n"] += 1
        n = counter["n"]
        owner = _profile(
            db,
            f"owner{n}@example.com",
            "owner",
            "Claire",
            "Martin",
            address="12 rue des Lilas, 69003 Lyon",
            phone="+33 6 12 34 56 78",
        )
        owner_profile = OwnerProfile(profile_id=owner.id, owner_type=owner_type)
        if owner_type == "societe":
            owner_profile.company_name = "SCI Les Tilleuls"
            owner_profile.siret = "12345678900011"
            owner_profile.head_office_address = "3 place Bellecour, 69002 Lyon"
        db.add(owner_profile)

        fields = {
            "address": "8 quai Saint-Vincent",
            "postal_code": "69001",
            "city": "Lyon",
            "property_type": "appartement",
            "living_area_m2": Decimal("48.50"),
            "rooms": 2,
            "construction_year": 1932,
            "energy_class": "D",
            "ghg_class": "E",
            "equipped_kitchen": True,
            "has_cellar": True,
        }
        fields.update(property_fields)
        prop = Property(owner_id=owner.id, **fields)
        db.add(prop)
        db.flush()

        lease = Lease(
            property_id=prop.id,
            lease_type=lease_type,
            status="draft",
            rent=rent,
            charges=charges,
            deposit=deposit,
            start_date=start_date,
            created_at=datetime(2025, 8, 1, 10, 0, 0),
            updated_at=datetime(2025, 8, 1, 10, 0, 0),
        )
        db.add(lease)
        db.flush()

        landlord_signer = LeaseSigner(lease_id=lease.id, role="proprietaire", profile_id=owner.id)
        db.add(landlord_signer)

        tenant = None
        tenant_signer = None
        if with_tenant:
            tenant = _profile(
                db,
                f"tenant{n}@example.com",
                "tenant",
                "Lucas",
                "Bernard",
                birth_date=date(1994, 3, 14),
                birth_place="Grenoble",
            )
            tenant_signer = LeaseSigner(
                lease_id=lease.id,
                role="locataire_principal",
                profile_id=tenant.id,
                invited_email=tenant.email,
            )
            db.add(tenant_signer)

        if with_dpe:
            db.add(
                PropertyDocument(
                    property_id=prop.id,
                    doc_type="dpe",
                    metadata_json={"classe_energie": "C", "classe_ges": "D", "date_realisation": "2024-02-01"},
                )
            )

        outsider = _profile(db, f"outsider{n}@example.com", "tenant", "Paul", "Durand")
        admin = _profile(db, f"admin{n}@example.com", "admin", "Admin", "Plateforme")
        db.commit()

        return SimpleNamespace(
            owner=owner,
            owner_profile=owner_profile,
            property=prop,
            lease=lease,
            landlord_signer=landlord_signer,
            tenant=tenant,
            tenant_signer=tenant_signer,
            outsider=outsider,
            admin=admin,
        )

    return make
