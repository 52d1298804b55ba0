"""Tests for the hash-chained audit trail."""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from leasedoc_api.audit.service import ACTION_CREATE, ACTION_READ, AuditTrail, determine_risk_level
from leasedoc_api.models import AuditLogEntry

ENTITY = "lease-document"
LEASE_ID = "7d2c9e41-6a3b-4c8d-9e0f-1a2b3c4d5e6f"


class TestAuditTrail:
    def test_entries_are_chained(self, audit):
        first = audit.record("owner-1", ACTION_CREATE, ENTITY, LEASE_ID, {"cached": False})
        second = audit.record("owner-1", ACTION_READ, ENTITY, LEASE_ID, {"cached": True})
        third = audit.record(None, ACTION_READ, ENTITY, LEASE_ID, {"denied": True}, success=False)

        assert first.previous_event_hash is None
        assert second.previous_event_hash == first.event_hash
        assert third.previous_event_hash == second.event_hash
        assert audit.verify_chain(ENTITY, LEASE_ID)

    def test_chains_are_per_entity(self, audit):
        audit.record("owner-1", ACTION_CREATE, ENTITY, LEASE_ID)

        other = audit.record("owner-2", ACTION_CREATE, ENTITY, "another-lease")

        assert other.previous_event_hash is None

    def test_tampering_is_detected(self, db, audit):
        audit.record("owner-1", ACTION_CREATE, ENTITY, LEASE_ID, {"cached": False})
        entry = audit.record("owner-1", ACTION_READ, ENTITY, LEASE_ID, {"cached": True})

        stored = db.query(AuditLogEntry).filter(AuditLogEntry.id == entry.id).one()
        stored.metadata_json = {"cached": False}
        db.commit()

        assert not audit.verify_chain(ENTITY, LEASE_ID)

    def test_entries_oldest_first(self, audit):
        audit.record("owner-1", ACTION_CREATE, ENTITY, LEASE_ID)
        audit.record("owner-1", ACTION_READ, ENTITY, LEASE_ID)

        assert [e.action for e in audit.entries(ENTITY, LEASE_ID)] == ["create", "read"]

    def test_risk_level_is_stored(self, audit):
        entry = audit.record("tenant-1", ACTION_READ, ENTITY, LEASE_ID, success=False)

        assert entry.risk_level == "medium"
        assert entry.success is False

    def test_write_failure_is_swallowed(self):
        session = MagicMock()
        session.query.return_value.filter.return_value.order_by.return_value.first.return_value = None
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        audit = AuditTrail(session_factory=lambda: session)

        assert audit.record("owner-1", ACTION_READ, ENTITY, LEASE_ID) is None
        session.rollback.assert_called_once()
        session.close.assert_called_once()


def test_determine_risk_level():
    assert determine_risk_level(ACTION_READ, True) == "low"
    assert determine_risk_level(ACTION_CREATE, True) == "low"
    assert determine_risk_level(ACTION_READ, False) == "medium"
    assert determine_risk_level("delete", True) == "high"
