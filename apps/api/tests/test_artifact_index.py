"""Tests for the artifact index."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from leasedoc_api.documents.errors import ArtifactConflictError, IndexWriteError
from leasedoc_api.documents.index import LEASE_DOCUMENT_KIND, ArtifactIndex
from leasedoc_api.models import GeneratedDocument

OWNER = "0f8e4c1a-5b7d-4e5a-9a0c-2d3b4c5d6e7f"
KIND = LEASE_DOCUMENT_KIND


def _path(fingerprint):
    return f"leases/{OWNER}/{KIND}-{fingerprint}.pdf"


class TestArtifactIndex:
    def test_find_latest_empty(self, db):
        assert ArtifactIndex(db).find_latest(OWNER, KIND) is None

    def test_insert_then_find(self, db):
        index = ArtifactIndex(db)

        created = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16), metadata={"size": 10})
        found = index.find_latest(OWNER, KIND)

        assert found.id == created.id
        assert found.version == 1
        assert found.metadata_json == {"size": 10}

    def test_kinds_are_separate(self, db):
        index = ArtifactIndex(db)
        index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        assert index.find_latest(OWNER, "inventory-report") is None

    def test_same_fingerprint_is_idempotent(self, db):
        index = ArtifactIndex(db)
        first = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        second = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16), expected_version=1)

        assert second.id == first.id
        assert second.version == 1
        assert db.query(GeneratedDocument).count() == 1

    def test_new_fingerprint_updates_in_place(self, db):
        index = ArtifactIndex(db)
        first = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        updated = index.upsert(OWNER, KIND, "b" * 16, _path("b" * 16), expected_version=1)

        assert updated.id == first.id
        assert updated.version == 2
        assert updated.fingerprint == "b" * 16
        assert updated.storage_path == _path("b" * 16)
        assert db.query(GeneratedDocument).count() == 1

    def test_stale_version_conflicts(self, db):
        index = ArtifactIndex(db)
        index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))
        index.upsert(OWNER, KIND, "b" * 16, _path("b" * 16), expected_version=1)

        with pytest.raises(ArtifactConflictError) as exc_info:
            index.upsert(OWNER, KIND, "c" * 16, _path("c" * 16), expected_version=1)

        assert exc_info.value.current.version == 2
        assert exc_info.value.current.fingerprint == "b" * 16

    def test_unseen_existing_row_conflicts(self, db):
        index = ArtifactIndex(db)
        index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        with pytest.raises(ArtifactConflictError) as exc_info:
            index.upsert(OWNER, KIND, "b" * 16, _path("b" * 16), expected_version=None)

        assert exc_info.value.current.fingerprint == "a" * 16
        row = index.find_latest(OWNER, KIND)
        assert row.fingerprint == "a" * 16
        assert row.version == 1

    def test_unseen_row_with_same_content_is_idempotent(self, db):
        index = ArtifactIndex(db)
        first = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        again = index.upsert(OWNER, KIND, "a" * 16, _path("a" * 16), expected_version=None)

        assert again.id == first.id
        assert again.version == 1

    def test_expected_version_without_row_conflicts(self, db):
        with pytest.raises(ArtifactConflictError) as exc_info:
            ArtifactIndex(db).upsert(OWNER, KIND, "a" * 16, _path("a" * 16), expected_version=1)

        assert exc_info.value.current is None

    def test_concurrent_insert_conflicts(self, db, session_factory):
        other = session_factory()
        try:
            ArtifactIndex(other).upsert(OWNER, KIND, "b" * 16, _path("b" * 16))
        finally:
            other.close()

        with pytest.raises(ArtifactConflictError) as exc_info:
            ArtifactIndex(db)._insert(OWNER, KIND, "a" * 16, _path("a" * 16), None)

        assert exc_info.value.current.fingerprint == "b" * 16

    def test_backend_error_becomes_index_write_error(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("database is gone"))

        with pytest.raises(IndexWriteError):
            ArtifactIndex(session).upsert(OWNER, KIND, "a" * 16, _path("a" * 16))

        session.rollback.assert_called_once()
