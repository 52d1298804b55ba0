"""Lease document retrieval pipeline.

Serves the latest rendered document of a lease, rendering it only when its
content fingerprint changed since the last render:

    AUTHORIZING -> FINGERPRINT_KNOWN -> CACHE_HIT | CACHE_MISS
        -> [ASSEMBLING -> RENDERING -> PERSISTING] -> RESPONDING -> DONE

``FAILED`` is reachable from every state. Index writes only happen after the
blob upload was acknowledged, so the index never points at a missing object.
Concurrent misses on the same lease coalesce on a render lock, and the index
upsert is guarded by an optimistic version check.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from leasedoc_api.audit.service import ACTION_CREATE, ACTION_READ, AuditTrail
from leasedoc_api.auth.caller import Caller
from leasedoc_api.documents.assembler import DocumentAssembler
from leasedoc_api.documents.errors import (
    ArtifactConflictError,
    AuthenticationError,
    AuthorizationError,
    DocumentError,
    IndexWriteError,
    RenderError,
    SignedUrlError,
    StorageReadError,
)
from leasedoc_api.documents.fingerprint import FingerprintComputer
from leasedoc_api.documents.index import LEASE_DOCUMENT_KIND, ArtifactIndex
from leasedoc_api.documents.locks import RenderLockTimeout, get_render_lock
from leasedoc_api.documents.renderer import LeaseDocumentRenderer, get_renderer
from leasedoc_api.documents.source import LeaseSource, LeaseSourceLoader
from leasedoc_api.models import GeneratedDocument, Profile
from leasedoc_api.settings import Settings, get_settings
from leasedoc_api.storage.service import StorageService, get_storage_service
from leasedoc_api.utils.metrics import (
    documents_served,
    index_conflicts,
    renders_in_progress,
    renders_total,
    retrieval_duration_seconds,
    retrieval_failures,
    signed_url_fallbacks,
)

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class RetrievalState(str, Enum):
    AUTHORIZING = "authorizing"
    FINGERPRINT_KNOWN = "fingerprint_known"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    ASSEMBLING = "assembling"
    RENDERING = "rendering"
    PERSISTING = "persisting"
    RESPONDING = "responding"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RetrievalResult:
    """What the API layer needs to answer a document request.

    Exactly one of ``signed_url`` and ``content`` is set.
    """

    lease_id: str
    fingerprint: str
    storage_path: str
    cached: bool
    filename: str
    content_type: str = PDF_CONTENT_TYPE
    signed_url: Optional[str] = None
    content: Optional[bytes] = None
    expires_in: Optional[int] = None
    states: List[RetrievalState] = field(default_factory=list)

    @property
    def delivery(self) -> str:
        return "signed_url" if self.signed_url else "bytes"


class RetrievalTrace:
    """Records state transitions of one retrieval for logs and tests."""

    def __init__(self, lease_id: str, correlation_id: Optional[str]):
        self.lease_id = lease_id
        self.correlation_id = correlation_id
        self.states: List[RetrievalState] = []

    @property
    def current(self) -> Optional[RetrievalState]:
        return self.states[-1] if self.states else None

    def enter(self, state: RetrievalState):
        self.states.append(state)
        logger.debug(
            f"Retrieval state {state.value}",
            extra={"lease_id": self.lease_id, "correlation_id": self.correlation_id},
        )


class DocumentRetrievalService:
    """Retrieve, and render when stale, the document of a lease."""

    def __init__(
        self,
        db: Session,
        storage: Optional[StorageService] = None,
        renderer: Optional[LeaseDocumentRenderer] = None,
        audit: Optional[AuditTrail] = None,
        render_lock=None,
        assembler: Optional[DocumentAssembler] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.storage = storage or get_storage_service()
        self.renderer = renderer or get_renderer()
        self.audit = audit or AuditTrail()
        self.render_lock = render_lock or get_render_lock()
        self.assembler = assembler or DocumentAssembler()
        self.loader = LeaseSourceLoader(db)
        self.index = ArtifactIndex(db)
        self.fingerprints = FingerprintComputer(
            length=self.settings.fingerprint_length,
            include_updated_at=self.settings.fingerprint_include_updated_at,
        )
        self.kind = LEASE_DOCUMENT_KIND

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def retrieve(self, lease_id: str, caller: Caller, correlation_id: Optional[str] = None) -> RetrievalResult:
        """Return a signed URL for, or the bytes of, the lease document.

        Raises:
            AuthenticationError: no authenticated caller
            NotFoundError: lease or property does not exist
            AuthorizationError: caller is not owner, signer or admin
            AssemblyError, RenderError, StorageUploadError, IndexWriteError:
                the document could not be produced
        """
        trace = RetrievalTrace(lease_id, correlation_id)
        started = time.perf_counter()
        try:
            result = self._retrieve(lease_id, caller, trace)
        except DocumentError as e:
            failed_in = trace.current
            trace.enter(RetrievalState.FAILED)
            retrieval_failures.labels(code=e.code).inc()
            log = logger.warning if e.http_status < 500 else logger.error
            log(
                f"Document retrieval failed in {failed_in.value if failed_in else 'start'}: {e.code}",
                extra={"lease_id": lease_id, "correlation_id": correlation_id, "code": e.code},
            )
            raise

        trace.enter(RetrievalState.DONE)
        result.states = trace.states
        outcome = "hit" if result.cached else "miss"
        documents_served.labels(outcome=outcome, delivery=result.delivery).inc()
        retrieval_duration_seconds.labels(outcome=outcome).observe(time.perf_counter() - started)
        logger.info(
            "Lease document served",
            extra={
                "lease_id": lease_id,
                "fingerprint": result.fingerprint,
                "cached": result.cached,
                "delivery": result.delivery,
                "correlation_id": correlation_id,
            },
        )
        return result

    def preview_html(self, lease_id: str, caller: Caller, correlation_id: Optional[str] = None) -> str:
        """Render the lease as HTML. Never cached, audited as a read."""
        source = self._authorize(lease_id, caller, correlation_id)
        html = self.renderer.render_html(self.assembler.assemble(source))
        self.audit.record(
            actor_id=caller.actor_id,
            action=ACTION_READ,
            entity_type=self.kind,
            entity_id=lease_id,
            metadata={"cached": False, "preview": True, **caller.describe()},
            correlation_id=correlation_id,
        )
        return html

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _retrieve(self, lease_id: str, caller: Caller, trace: RetrievalTrace) -> RetrievalResult:
        trace.enter(RetrievalState.AUTHORIZING)
        source = self._authorize(lease_id, caller, trace.correlation_id)

        fingerprint = self.fingerprints.compute(source)
        trace.enter(RetrievalState.FINGERPRINT_KNOWN)

        current = self.index.find_latest(lease_id, self.kind)
        if current is not None and current.fingerprint == fingerprint:
            result = self._serve_hit(current, caller, trace)
            if result is not None:
                return result

        trace.enter(RetrievalState.CACHE_MISS)
        with self._single_flight(lease_id):
            # A concurrent request may have rendered while we waited
            current = self.index.find_latest(lease_id, self.kind)
            if current is not None and current.fingerprint == fingerprint:
                result = self._serve_hit(current, caller, trace)
                if result is not None:
                    return result
            return self._render_and_persist(source, fingerprint, current, caller, trace)

    def _authorize(self, lease_id: str, caller: Caller, correlation_id: Optional[str]) -> LeaseSource:
        if not caller.is_authenticated:
            raise AuthenticationError()

        source = self.loader.load(lease_id)
        relation = self._relation(source, caller)
        if relation is None:
            self.audit.record(
                actor_id=caller.actor_id,
                action=ACTION_READ,
                entity_type=self.kind,
                entity_id=lease_id,
                metadata={"denied": True, **caller.describe()},
                success=False,
                correlation_id=correlation_id,
            )
            raise AuthorizationError()
        return source

    def _relation(self, source: LeaseSource, caller: Caller) -> Optional[str]:
        """How the caller relates to the lease, or None when unrelated."""
        if caller.profile_id:
            if caller.profile_id == source.owner_id:
                return "owner"
            if any(s.profile_id == caller.profile_id for s in source.signers):
                return "signer"
            profile = self.db.query(Profile).filter(Profile.id == caller.profile_id).first()
            if profile is not None and profile.role == "admin":
                return "admin"
            return None

        invitation = caller.invitation
        if invitation is None or invitation.lease_id != source.lease_id:
            return None
        for signer in source.signers:
            emails = {signer.invited_email, signer.profile.email if signer.profile else None}
            if invitation.email in {e.strip().lower() for e in emails if e}:
                return "invited_signer"
        return None

    def _serve_hit(
        self, artifact: GeneratedDocument, caller: Caller, trace: RetrievalTrace
    ) -> Optional[RetrievalResult]:
        """Serve the stored artifact. Returns None when its blob is unreadable."""
        trace.enter(RetrievalState.CACHE_HIT)
        metadata = artifact.metadata_json or {}
        result = RetrievalResult(
            lease_id=artifact.owner_id,
            fingerprint=artifact.fingerprint,
            storage_path=artifact.storage_path,
            cached=True,
            filename=metadata.get("filename") or f"{self.kind}-{artifact.fingerprint}.pdf",
            content_type=metadata.get("content_type") or PDF_CONTENT_TYPE,
        )

        try:
            result.signed_url = self.storage.signed_url(
                artifact.storage_path, self.settings.document_signed_url_ttl
            )
            result.expires_in = self.settings.document_signed_url_ttl
        except SignedUrlError:
            signed_url_fallbacks.inc()
            try:
                result.content = self.storage.get_object(artifact.storage_path)
            except (FileNotFoundError, StorageReadError) as e:
                logger.warning(
                    f"Indexed artifact is unreadable, re-rendering: {e}",
                    extra={"lease_id": artifact.owner_id, "storage_path": artifact.storage_path},
                )
                return None

        trace.enter(RetrievalState.RESPONDING)
        self.audit.record(
            actor_id=caller.actor_id,
            action=ACTION_READ,
            entity_type=self.kind,
            entity_id=artifact.owner_id,
            metadata={
                "cached": True,
                "storage_path": artifact.storage_path,
                "fingerprint": artifact.fingerprint,
                "delivery": result.delivery,
                **caller.describe(),
            },
            correlation_id=trace.correlation_id,
        )
        return result

    def _render_and_persist(
        self,
        source: LeaseSource,
        fingerprint: str,
        current: Optional[GeneratedDocument],
        caller: Caller,
        trace: RetrievalTrace,
    ) -> RetrievalResult:
        lease_id = source.lease_id

        trace.enter(RetrievalState.ASSEMBLING)
        model = self.assembler.assemble(source)

        trace.enter(RetrievalState.RENDERING)
        try:
            rendered = self.renderer.render(model)
        except RenderError:
            renders_total.labels(status="failed").inc()
            raise
        renders_total.labels(status="ok").inc()

        trace.enter(RetrievalState.PERSISTING)
        storage_path = self.storage.build_object_key(lease_id, self.kind, fingerprint)
        self.storage.upload(
            storage_path,
            rendered.content,
            content_type=rendered.content_type,
            cache_control=self.settings.document_cache_control,
            overwrite=True,
        )
        artifact = self._upsert(
            lease_id,
            fingerprint,
            storage_path,
            metadata={
                "filename": rendered.filename,
                "content_type": rendered.content_type,
                "size": len(rendered.content),
                "assembly": [step.model_dump() for step in model.steps],
            },
            current=current,
        )
        if artifact.fingerprint != fingerprint:
            # A concurrent writer rendered newer data; our blob stays unindexed
            superseded = self._serve_hit(artifact, caller, trace)
            if superseded is None:
                raise IndexWriteError("Document changed concurrently, please retry")
            return superseded

        self.audit.record(
            actor_id=caller.actor_id,
            action=ACTION_CREATE,
            entity_type=self.kind,
            entity_id=lease_id,
            metadata={
                "cached": False,
                "storage_path": artifact.storage_path,
                "fingerprint": artifact.fingerprint,
                **caller.describe(),
            },
            correlation_id=trace.correlation_id,
        )

        trace.enter(RetrievalState.RESPONDING)
        result = RetrievalResult(
            lease_id=lease_id,
            fingerprint=artifact.fingerprint,
            storage_path=artifact.storage_path,
            cached=False,
            filename=rendered.filename,
            content_type=rendered.content_type,
        )
        try:
            result.signed_url = self.storage.signed_url(
                artifact.storage_path, self.settings.document_signed_url_ttl
            )
            result.expires_in = self.settings.document_signed_url_ttl
        except SignedUrlError:
            signed_url_fallbacks.inc()
            result.content = rendered.content
        return result

    def _upsert(
        self,
        lease_id: str,
        fingerprint: str,
        storage_path: str,
        metadata: dict,
        current: Optional[GeneratedDocument],
    ) -> GeneratedDocument:
        """Upsert with an optimistic version check, re-reading on conflict.

        On conflict the lease is reloaded. The write is retried only while the
        fresh fingerprint still equals ours. When it matches the other writer's
        row, that row is returned. Otherwise our render is stale and
        IndexWriteError is raised without touching the index.
        """
        expected_version = current.version if current is not None else None
        attempts = max(1, self.settings.index_upsert_max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return self.index.upsert(
                    lease_id,
                    self.kind,
                    fingerprint,
                    storage_path,
                    metadata=metadata,
                    expected_version=expected_version,
                )
            except ArtifactConflictError as conflict:
                latest = conflict.current
                if latest is not None and latest.fingerprint == fingerprint:
                    # Another writer stored the same content
                    index_conflicts.labels(resolution="served_current").inc()
                    return latest

                fresh = self._fresh_fingerprint(lease_id)
                if latest is not None and fresh == latest.fingerprint:
                    index_conflicts.labels(resolution="superseded").inc()
                    logger.info(
                        "Artifact index already holds a newer render",
                        extra={"lease_id": lease_id, "fingerprint": latest.fingerprint},
                    )
                    return latest
                if fresh != fingerprint:
                    index_conflicts.labels(resolution="stale").inc()
                    logger.warning(
                        "Lease changed while its document was rendered",
                        extra={"lease_id": lease_id, "fingerprint": fingerprint, "fresh_fingerprint": fresh},
                    )
                    raise IndexWriteError("Lease changed while its document was rendered, please retry")

                index_conflicts.labels(resolution="retried").inc()
                logger.info(
                    f"Artifact index conflict, retrying ({attempt}/{attempts})",
                    extra={"lease_id": lease_id, "fingerprint": fingerprint},
                )
                expected_version = latest.version if latest is not None else None

        raise IndexWriteError("Document metadata kept changing concurrently, please retry")

    def _fresh_fingerprint(self, lease_id: str) -> str:
        """Fingerprint of the lease as currently committed."""
        self.db.expire_all()
        return self.fingerprints.compute(self.loader.load(lease_id))

    @contextmanager
    def _single_flight(self, lease_id: str) -> Iterator[None]:
        try:
            with self.render_lock.hold(lease_id, self.kind):
                renders_in_progress.inc()
                try:
                    yield
                finally:
                    renders_in_progress.dec()
        except RenderLockTimeout:
            # The optimistic upsert still detects a racing writer
            logger.warning(
                "Render lock not acquired, rendering without it",
                extra={"lease_id": lease_id},
            )
            yield
