# Overview: Service-layer operations for audit stamps and soft delete.

"""
Audit Stamping and Soft Delete

Every create/update/delete of an audited record goes through one of the
functions below, called explicitly by the owning service. Nothing is
stamped implicitly by ORM events.

RULES:
- created / updated are single-slot stamps {"at", "by"}; a new stamp
  replaces the previous one
- delete never removes the row: deleted_at is set and the deleted
  metadata {"at", "by", "ip", "reason"} is merged onto whatever was there
- deleted_at is set once; deleting a trashed record refreshes the metadata
  but keeps deleted_at
- restore clears both deleted_at and deleted
- default listings exclude trashed rows; with_trashed() is for audit tools

Each operation emits a blinker signal with the record as sender so other
components can observe it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

from blinker import Namespace
from flask import g, has_request_context, request

from ..extensions import db
from ..models import AuditMixin
from ..validation import NotFoundError
from backoffice.time_utils import to_utc_z, utcnow


_signals = Namespace()

record_created = _signals.signal("record-created")
record_updated = _signals.signal("record-updated")
record_deleted = _signals.signal("record-deleted")
record_restored = _signals.signal("record-restored")


M = TypeVar("M", bound=AuditMixin)


@dataclass(frozen=True)
class AuditContext:
    """Who is acting, from where, and why (reason only matters for deletes)."""
    actor_id: str | None = None
    ip: str | None = None
    reason: str | None = None

    def with_reason(self, reason: str | None) -> "AuditContext":
        return AuditContext(actor_id=self.actor_id, ip=self.ip, reason=reason)


SYSTEM_CONTEXT = AuditContext()


def audit_context_from_request(reason: str | None = None) -> AuditContext:
    """
    Build the context for the current request.

    Actor is the authenticated user (None when unauthenticated); the delete
    reason comes from the explicit argument, else the JSON body or query
    string "reason".
    """
    if not has_request_context():
        return AuditContext(reason=reason)

    user = getattr(g, "current_user", None)
    if reason is None:
        body = request.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get("reason"), str):
            reason = body["reason"]
        else:
            reason = request.args.get("reason")

    return AuditContext(
        actor_id=user.id if user is not None else None,
        ip=request.remote_addr or None,
        reason=reason or None,
    )


def _stamp(ctx: AuditContext) -> dict:
    return {"at": to_utc_z(utcnow()), "by": ctx.actor_id}


def stamp_created(record: M, ctx: AuditContext = SYSTEM_CONTEXT) -> M:
    """Stamp and add a new record to the session (no commit)."""
    record.created = _stamp(ctx)
    db.session.add(record)
    record_created.send(record, context=ctx)
    return record


def stamp_updated(record: M, ctx: AuditContext = SYSTEM_CONTEXT) -> M:
    record.updated = _stamp(ctx)
    record_updated.send(record, context=ctx)
    return record


def soft_delete(record: M, ctx: AuditContext = SYSTEM_CONTEXT) -> M:
    """
    Trash a record.

    Existing metadata is merged, not replaced: keys written by earlier
    deletes (or by other tools) survive unless overwritten here.
    """
    now = utcnow()
    meta = dict(record.deleted or {})
    meta.update({
        "at": to_utc_z(now),
        "by": ctx.actor_id,
        "ip": ctx.ip,
        "reason": ctx.reason,
    })

    if record.deleted_at is None:
        record.deleted_at = now
    record.deleted = meta

    record_deleted.send(record, context=ctx)
    return record


def restore(record: M, ctx: AuditContext = SYSTEM_CONTEXT) -> M:
    record.deleted_at = None
    record.deleted = None
    record_restored.send(record, context=ctx)
    return record


def active(model: type[M]):
    """Default listing query: trashed rows excluded."""
    return db.session.query(model).filter(model.deleted_at.is_(None))


def with_trashed(model: type[M]):
    """Audit/inspection query: trashed rows included."""
    return db.session.query(model)


def only_trashed(model: type[M]):
    return db.session.query(model).filter(model.deleted_at.isnot(None))


def find(model: type[M], record_id: str | None, *, include_trashed: bool = False) -> M | None:
    if not record_id:
        return None
    record = db.session.get(model, record_id)
    if record is None:
        return None
    if record.is_trashed and not include_trashed:
        return None
    return record


def get_or_raise(model: type[M], record_id: str | None, *, include_trashed: bool = False, label: str | None = None) -> M:
    record = find(model, record_id, include_trashed=include_trashed)
    if record is None:
        name = label or model.__name__
        raise NotFoundError(f"{name} not found. Please fetch again.")
    return record


def soft_delete_many(model: type[M], ids: list[str], ctx: AuditContext = SYSTEM_CONTEXT) -> tuple[int, list[str]]:
    """
    Trash every live record in ids. Returns (deleted_count, not_found_ids).

    Caller commits.
    """
    deleted_count = 0
    not_found: list[str] = []
    for record_id in ids:
        record = find(model, record_id)
        if record is None:
            not_found.append(record_id)
            continue
        soft_delete(record, ctx)
        deleted_count += 1
    return deleted_count, not_found
