from __future__ import annotations

import uuid

from ..extensions import db
from backoffice.time_utils import to_utc_z


def new_id() -> str:
    """Opaque primary key: 32 hex chars, generated once at creation."""
    return uuid.uuid4().hex


class AuditMixin:
    """
    Audit metadata and soft-delete state shared by master and transactional records.

    created/updated are single-slot stamps ({"at", "by"}); each update replaces
    the previous stamp. deleted holds {"at", "by", "ip", "reason"} and deleted_at
    marks the row as trashed. The stamps are written explicitly by
    services.audit_service, never by ORM lifecycle hooks.
    """

    created = db.Column(db.JSON, nullable=True)
    updated = db.Column(db.JSON, nullable=True)
    deleted = db.Column(db.JSON, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def audit_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "deleted_at": to_utc_z(self.deleted_at),
        }
