"""Artifact index: latest rendered document per (owner, kind)."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from leasedoc_api.documents.errors import ArtifactConflictError, IndexWriteError
from leasedoc_api.models import GeneratedDocument

logger = logging.getLogger(__name__)

LEASE_DOCUMENT_KIND = "lease-document"


class ArtifactIndex:
    """Metadata store for rendered artifacts.

    Rows are unique per (kind, owner_id) and updated in place when the
    fingerprint changes. Every update bumps ``version`` so concurrent writers
    can detect that they were superseded.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_latest(self, owner_id: str, kind: str) -> Optional[GeneratedDocument]:
        """Return the most recently created artifact for (owner, kind)."""
        return (
            self.db.query(GeneratedDocument)
            .populate_existing()
            .filter(
                GeneratedDocument.owner_id == owner_id,
                GeneratedDocument.kind == kind,
            )
            .order_by(GeneratedDocument.created_at.desc(), GeneratedDocument.id.desc())
            .first()
        )

    def upsert(
        self,
        owner_id: str,
        kind: str,
        fingerprint: str,
        storage_path: str,
        metadata: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> GeneratedDocument:
        """Create or update the artifact row for (owner, kind).

        Args:
            expected_version: version the caller last observed, or None when the
                caller saw no row. A mismatch, including an existing row when
                None was given, raises ArtifactConflictError unless the row
                already holds this fingerprint and path.

        Raises:
            ArtifactConflictError: another writer changed the row first
            IndexWriteError: the database rejected the write
        """
        try:
            existing = self.find_latest(owner_id, kind)

            if existing is None:
                if expected_version is not None:
                    raise ArtifactConflictError(current=None)
                return self._insert(owner_id, kind, fingerprint, storage_path, metadata)

            if existing.fingerprint == fingerprint and existing.storage_path == storage_path:
                # Retry of a write that already landed
                return existing

            if expected_version is None:
                raise ArtifactConflictError(current=existing)
            return self._update(existing, fingerprint, storage_path, metadata, expected_version)
        except (ArtifactConflictError, IndexWriteError):
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to upsert artifact for {kind}/{owner_id}: {e}",
                extra={"owner_id": owner_id, "kind": kind},
            )
            raise IndexWriteError() from e

    def _insert(
        self,
        owner_id: str,
        kind: str,
        fingerprint: str,
        storage_path: str,
        metadata: Optional[dict],
    ) -> GeneratedDocument:
        now = datetime.utcnow()
        artifact = GeneratedDocument(
            kind=kind,
            owner_id=owner_id,
            fingerprint=fingerprint,
            storage_path=storage_path,
            metadata_json=metadata or {},
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.db.add(artifact)
        try:
            self.db.commit()
        except IntegrityError:
            # Unique (kind, owner_id): a concurrent writer inserted first
            self.db.rollback()
            logger.info(
                "Concurrent artifact insert detected",
                extra={"owner_id": owner_id, "kind": kind},
            )
            raise ArtifactConflictError(current=self.find_latest(owner_id, kind))
        self.db.refresh(artifact)
        logger.info(
            "Artifact created",
            extra={"owner_id": owner_id, "kind": kind, "fingerprint": fingerprint},
        )
        return artifact

    def _update(
        self,
        existing: GeneratedDocument,
        fingerprint: str,
        storage_path: str,
        metadata: Optional[dict],
        seen_version: int,
    ) -> GeneratedDocument:
        result = self.db.execute(
            update(GeneratedDocument)
            .where(
                GeneratedDocument.id == existing.id,
                GeneratedDocument.version == seen_version,
            )
            .values(
                fingerprint=fingerprint,
                storage_path=storage_path,
                metadata_json=metadata or {},
                version=GeneratedDocument.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.db.expire(existing)
            raise ArtifactConflictError(current=self.find_latest(existing.owner_id, existing.kind))

        self.db.commit()
        self.db.refresh(existing)
        logger.info(
            "Artifact superseded",
            extra={
                "owner_id": existing.owner_id,
                "kind": existing.kind,
                "fingerprint": fingerprint,
                "version": existing.version,
            },
        )
        return existing
