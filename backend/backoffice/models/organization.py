from __future__ import annotations

from ..extensions import db
from .base import AuditMixin, new_id


class Organization(AuditMixin, db.Model):
    """
    Company or site using the back office.

    Attributes live in the freeform `data` blob (name, address, phone, ...).
    """
    __tablename__ = "organizations"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    data = db.Column(db.JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={(self.data or {}).get('name')!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data": self.data or {},
            **self.audit_dict(),
        }


class Department(AuditMixin, db.Model):
    """Department; its `data` blob carries the owning organizationId."""
    __tablename__ = "departments"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(32), db.ForeignKey("organizations.id"), nullable=True, index=True)
    data = db.Column(db.JSON, nullable=False, default=dict)

    organization = db.relationship("Organization", backref=db.backref("departments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "data": self.data or {},
            **self.audit_dict(),
        }
