"""
Audit stamping and soft delete.

Verifies:
- Soft delete never removes the row and keeps the first deleted_at
- Deleted metadata is merged, not replaced
- Restore is the inverse of delete
- Default listings exclude trashed rows
"""

from backoffice.models import Organization
from backoffice.services import audit_service
from backoffice.services.audit_service import AuditContext


def _organization(session, name="Acme"):
    organization = Organization(data={"name": name})
    audit_service.stamp_created(organization, AuditContext(actor_id="u1"))
    session.commit()
    return organization


class TestStamps:

    def test_created_stamp_records_actor(self, db_session):
        organization = _organization(db_session)
        assert organization.created["by"] == "u1"
        assert organization.created["at"].endswith("Z")
        assert organization.updated is None

    def test_updated_stamp_replaces_previous(self, db_session):
        organization = _organization(db_session)
        audit_service.stamp_updated(organization, AuditContext(actor_id="u2"))
        audit_service.stamp_updated(organization, AuditContext(actor_id="u3"))
        db_session.commit()
        assert organization.updated["by"] == "u3"


class TestSoftDelete:

    def test_delete_keeps_row(self, db_session):
        organization = _organization(db_session)
        ctx = AuditContext(actor_id="u1", ip="10.0.0.1", reason="duplicate")
        audit_service.soft_delete(organization, ctx)
        db_session.commit()

        row = db_session.get(Organization, organization.id)
        assert row is not None
        assert row.is_trashed
        assert row.deleted["by"] == "u1"
        assert row.deleted["ip"] == "10.0.0.1"
        assert row.deleted["reason"] == "duplicate"

    def test_second_delete_keeps_first_deleted_at(self, db_session):
        organization = _organization(db_session)
        audit_service.soft_delete(organization, AuditContext(actor_id="u1", reason="first"))
        db_session.commit()
        first_deleted_at = organization.deleted_at

        audit_service.soft_delete(organization, AuditContext(actor_id="u2", reason="second"))
        db_session.commit()

        assert organization.deleted_at == first_deleted_at
        assert organization.deleted["by"] == "u2"
        assert organization.deleted["reason"] == "second"

    def test_delete_merges_existing_metadata(self, db_session):
        organization = _organization(db_session)
        organization.deleted = {"ticket": "OPS-1"}
        db_session.commit()

        audit_service.soft_delete(organization, AuditContext(actor_id="u1"))
        db_session.commit()

        assert organization.deleted["ticket"] == "OPS-1"
        assert organization.deleted["by"] == "u1"

    def test_restore_is_inverse_of_delete(self, db_session):
        organization = _organization(db_session)
        audit_service.soft_delete(organization)
        db_session.commit()

        audit_service.restore(organization)
        db_session.commit()

        assert organization.deleted_at is None
        assert organization.deleted is None
        assert audit_service.find(Organization, organization.id) is organization

    def test_listings_exclude_trashed(self, db_session):
        kept = _organization(db_session, "Kept")
        gone = _organization(db_session, "Gone")
        audit_service.soft_delete(gone)
        db_session.commit()

        active_ids = {o.id for o in audit_service.active(Organization).all()}
        assert active_ids == {kept.id}
        assert {o.id for o in audit_service.only_trashed(Organization).all()} == {gone.id}
        assert audit_service.with_trashed(Organization).count() == 2
        assert audit_service.find(Organization, gone.id) is None
        assert audit_service.find(Organization, gone.id, include_trashed=True) is gone

    def test_soft_delete_many_reports_missing(self, db_session):
        first = _organization(db_session, "First")
        second = _organization(db_session, "Second")
        audit_service.soft_delete(second)
        db_session.commit()

        deleted, not_found = audit_service.soft_delete_many(Organization, [first.id, second.id, "missing"])
        db_session.commit()

        assert deleted == 1
        assert not_found == [second.id, "missing"]

    def test_delete_emits_signal(self, db_session):
        organization = _organization(db_session)
        received = []

        def on_deleted(sender, context):
            received.append((sender, context.reason))

        audit_service.record_deleted.connect(on_deleted)
        try:
            audit_service.soft_delete(organization, AuditContext(reason="cleanup"))
        finally:
            audit_service.record_deleted.disconnect(on_deleted)

        assert received == [(organization, "cleanup")]


class TestSignals:

    def _capture(self, signal):
        received = []

        def receiver(sender, context):
            received.append((sender, context.actor_id))

        signal.connect(receiver)
        return received, lambda: signal.disconnect(receiver)

    def test_create_and_update_emit_signals(self, db_session):
        created, stop_created = self._capture(audit_service.record_created)
        updated, stop_updated = self._capture(audit_service.record_updated)
        try:
            organization = _organization(db_session)
            audit_service.stamp_updated(organization, AuditContext(actor_id="u2"))
        finally:
            stop_created()
            stop_updated()

        assert created == [(organization, "u1")]
        assert updated == [(organization, "u2")]

    def test_restore_emits_signal(self, db_session):
        organization = _organization(db_session)
        audit_service.soft_delete(organization)
        db_session.commit()

        restored, stop = self._capture(audit_service.record_restored)
        try:
            audit_service.restore(organization, AuditContext(actor_id="u9"))
        finally:
            stop()

        assert restored == [(organization, "u9")]
