# Overview: Read-only inspection of records that still reference a role.

"""
Role-Usage Inspector

Before deleting a role an operator wants to know what still points at it.
ROLE_REFERENCES is the hand-maintained list of (table, column) pairs with a
foreign key onto roles.id. discover_role_references() reads the same
information from the SQLAlchemy metadata; the test suite compares the two
so a new reference cannot be added without updating the registry.
"""

from __future__ import annotations

from sqlalchemy import func, select

from ..extensions import db
from ..models import Role
from ..validation import NotFoundError
from backoffice.time_utils import to_utc_z


ROLE_REFERENCES: frozenset[tuple[str, str]] = frozenset({
    ("users", "role_id"),
    ("role_windows", "role_id"),
})


def discover_role_references() -> set[tuple[str, str]]:
    """(table, column) pairs whose foreign key targets roles.id."""
    target = Role.__table__.c.id
    found = set()
    for table in db.metadata.sorted_tables:
        for fk in table.foreign_keys:
            if fk.column is target:
                found.add((table.name, fk.parent.name))
    return found


def _row_dict(row) -> dict:
    out = {}
    for key, value in row._mapping.items():
        if hasattr(value, "isoformat"):
            value = to_utc_z(value) if hasattr(value, "hour") else value.isoformat()
        out[key] = value
    return out


def find_role_usage(role_id: str) -> dict:
    """
    Every row referencing the role, grouped per (table, column).

    Trashed rows are included: they still hold the reference. The role
    itself may be trashed too.
    """
    if db.session.get(Role, role_id) is None:
        raise NotFoundError("Role not found. Please fetch again.")

    usage = []
    for table_name, column_name in sorted(ROLE_REFERENCES):
        table = db.metadata.tables[table_name]
        column = table.c[column_name]

        count = db.session.execute(
            select(func.count()).select_from(table).where(column == role_id)
        ).scalar_one()
        if not count:
            continue

        rows = db.session.execute(select(table).where(column == role_id)).all()
        # password hashes stay out of diagnostics
        data = [
            {k: v for k, v in _row_dict(row).items() if k != "password_hash"}
            for row in rows
        ]
        usage.append({
            "table": table_name,
            "column": column_name,
            "count": count,
            "data": data,
        })

    if usage:
        total = sum(u["count"] for u in usage)
        message = f"Role is referenced by {total} record(s) in {len(usage)} table(s)."
    else:
        message = "Role is not referenced by any record."

    return {"role_id": role_id, "usage": usage, "message": message}
