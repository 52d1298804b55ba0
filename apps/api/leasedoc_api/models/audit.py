"""Audit trail models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String

from leasedoc_api.db.base import Base


class AuditLogEntry(Base):
    """Append-only audit trail with hash chaining per audited entity."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(String(36), nullable=True, index=True)  # NULL for anonymous attempts
    action = Column(String(50), nullable=False, index=True)  # read, create
    entity_type = Column(String(100), nullable=False, index=True)
    entity_id = Column(String(36), nullable=False, index=True)
    metadata_json = Column(JSON, nullable=False)
    success = Column(Boolean, default=True, nullable=False)
    risk_level = Column(String(20), default="low", nullable=False)  # low, medium, high, critical
    correlation_id = Column(String(255), nullable=True, index=True)
    event_hash = Column(String(64), nullable=False, unique=True, index=True)
    previous_event_hash = Column(String(64), nullable=True, index=True)  # NULL for first event
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
