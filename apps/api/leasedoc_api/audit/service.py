"""Audit trail for lease document access, with hash chaining."""

import hashlib
import json
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leasedoc_api.db.session import SessionLocal
from leasedoc_api.documents.errors import AuditWriteError
from leasedoc_api.models import AuditLogEntry
from leasedoc_api.utils.metrics import audit_write_failures

logger = logging.getLogger(__name__)

ACTION_READ = "read"
ACTION_CREATE = "create"


def determine_risk_level(action: str, success: bool) -> str:
    """Risk level of an audited action."""
    if not success:
        # Denied access to a signed contract
        return "medium"
    if action not in (ACTION_READ, ACTION_CREATE):
        return "high"
    return "low"


class AuditTrail:
    """Append-only, tamper-evident log of document reads and creations.

    Every entry is written in its own session so that a failed audit write
    never rolls back, or is rolled back by, the request's main transaction.
    Writes are best-effort: failures are logged and counted, never raised.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def _hash_event(self, event_data: dict) -> str:
        """Compute hash of event data."""
        event_str = json.dumps(event_data, sort_keys=True, default=str)
        return hashlib.sha256(event_str.encode()).hexdigest()

    def _get_last_event_hash(self, db: Session, entity_type: str, entity_id: str) -> Optional[str]:
        last_event = (
            db.query(AuditLogEntry)
            .filter(
                AuditLogEntry.entity_type == entity_type,
                AuditLogEntry.entity_id == entity_id,
            )
            .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
            .first()
        )
        return last_event.event_hash if last_event else None

    def _event_data(self, entry: AuditLogEntry) -> dict:
        return {
            "actor_id": entry.actor_id,
            "action": entry.action,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "metadata": entry.metadata_json,
            "success": entry.success,
            "correlation_id": entry.correlation_id,
            "previous_hash": entry.previous_event_hash,
            "timestamp": entry.created_at.isoformat(),
        }

    def record(
        self,
        actor_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: Optional[dict] = None,
        success: bool = True,
        correlation_id: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        """Append an audit entry. Returns None when the write failed."""
        try:
            return self._write(actor_id, action, entity_type, entity_id, metadata, success, correlation_id)
        except AuditWriteError as e:
            audit_write_failures.labels(action=action).inc()
            logger.error(
                f"Audit write failed: {e.__cause__ or e}",
                extra={
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "correlation_id": correlation_id,
                },
            )
            return None

    def _write(
        self,
        actor_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: Optional[dict],
        success: bool,
        correlation_id: Optional[str],
    ) -> AuditLogEntry:
        risk_level = determine_risk_level(action, success)
        db = self.session_factory()
        try:
            entry = AuditLogEntry(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata_json=metadata or {},
                success=success,
                risk_level=risk_level,
                correlation_id=correlation_id,
                previous_event_hash=self._get_last_event_hash(db, entity_type, entity_id),
                created_at=datetime.utcnow(),
            )
            entry.event_hash = self._hash_event(self._event_data(entry))
            db.add(entry)
            db.commit()
            db.refresh(entry)
            db.expunge(entry)
        except SQLAlchemyError as e:
            db.rollback()
            raise AuditWriteError() from e
        finally:
            db.close()

        if risk_level in ("high", "critical") or not success:
            logger.warning(
                f"Security-relevant document access: {action} {entity_type}/{entity_id}",
                extra={
                    "actor_id": actor_id,
                    "risk_level": risk_level,
                    "success": success,
                    "correlation_id": correlation_id,
                },
            )
        return entry

    def entries(self, entity_type: str, entity_id: str) -> list[AuditLogEntry]:
        """Entries for an entity, oldest first."""
        db = self.session_factory()
        try:
            entries = (
                db.query(AuditLogEntry)
                .filter(
                    AuditLogEntry.entity_type == entity_type,
                    AuditLogEntry.entity_id == entity_id,
                )
                .order_by(AuditLogEntry.created_at.asc(), AuditLogEntry.id.asc())
                .all()
            )
            for entry in entries:
                db.expunge(entry)
            return entries
        finally:
            db.close()

    def verify_chain(self, entity_type: str, entity_id: str) -> bool:
        """Verify hash chain integrity for an entity."""
        previous_hash = None
        for entry in self.entries(entity_type, entity_id):
            if entry.previous_event_hash != previous_hash:
                return False
            if self._hash_event(self._event_data(entry)) != entry.event_hash:
                return False
            previous_hash = entry.event_hash
        return True
