"""Generated document index model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text, UniqueConstraint

from leasedoc_api.db.base import Base


class GeneratedDocument(Base):
    """Latest rendered artifact for an owning entity and document kind."""

    __tablename__ = "generated_documents"
    __table_args__ = (
        UniqueConstraint("kind", "owner_id", name="uq_generated_documents_kind_owner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(100), nullable=False, index=True)  # lease-document
    owner_id = Column(String(36), nullable=False, index=True)
    fingerprint = Column(String(64), nullable=False)
    storage_path = Column(Text, nullable=False)
    metadata_json = Column(JSON, nullable=True)
    version = Column(Integer, default=1, nullable=False)  # bumped on every update, optimistic lock token
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
