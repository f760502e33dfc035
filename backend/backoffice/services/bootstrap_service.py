# Overview: Idempotent bootstrap of the admin role, default windows and grants.

from __future__ import annotations

from ..extensions import db
from ..models import Role, RoleWindow, Window
from ..windows import DEFAULT_WINDOWS, GROUP_ACCESS_CODES
from . import audit_service
from .audit_service import AuditContext, SYSTEM_CONTEXT
from backoffice.time_utils import utcnow


ADMIN_ROLE_NAME = "Administrator"


def ensure_default_windows(ctx: AuditContext = SYSTEM_CONTEXT) -> dict[str, Window]:
    """
    Create the default windows that do not exist yet (matched by access code).

    Returns access code -> Window for every default window. Commits.
    """
    by_access = {
        w.access: w
        for w in audit_service.active(Window).filter(Window.access.isnot(None)).all()
    }

    # Definitions list groups before their children
    for access, name, url, icon, parent_access, order in DEFAULT_WINDOWS:
        if access in by_access:
            continue
        is_group = access in GROUP_ACCESS_CODES
        parent = by_access.get(parent_access) if parent_access else None
        window = Window(
            access=access,
            sort_order=order,
            data={
                "name": name,
                "access": access,
                "url": url,
                "icon": icon,
                "type": "group" if is_group else "window",
                "isParent": is_group,
                "parent": parent.id if parent else None,
                "order": order,
            },
        )
        audit_service.stamp_created(window, ctx)
        db.session.flush()
        by_access[access] = window

    db.session.commit()
    return {access: by_access[access] for access, *_ in DEFAULT_WINDOWS}


def ensure_admin_role(ctx: AuditContext = SYSTEM_CONTEXT) -> Role:
    role = audit_service.active(Role).filter(Role.name == ADMIN_ROLE_NAME).first()
    if role is None:
        role = Role(name=ADMIN_ROLE_NAME, description="Full access to every window")
        audit_service.stamp_created(role, ctx)
        db.session.commit()
    return role


def grant_all_windows(role: Role) -> int:
    """Give the role edit+admin on every live window it lacks. Returns grants created."""
    granted = {
        row[0] for row in db.session.query(RoleWindow.window_id).filter_by(role_id=role.id).all()
    }
    created = 0
    for window in audit_service.active(Window).all():
        if window.id in granted:
            continue
        db.session.add(RoleWindow(
            role_id=role.id,
            window_id=window.id,
            is_edit=True,
            is_admin=True,
            granted_at=utcnow(),
        ))
        created += 1
    db.session.commit()
    return created
