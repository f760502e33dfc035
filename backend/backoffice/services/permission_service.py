# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Window-Based Permission Resolution

WHY: The admin panel is a set of windows (pages). A role may open a window
when a RoleWindow row links them; the row's flags say whether it may also
edit or administer it.

DESIGN PRINCIPLES:
- Fail closed: no RoleWindow row means no access, all flags false
- Total: resolution never raises; unknown windows, users without a role
  and trashed roles all resolve to "no access"
- Flat: no inheritance, no group-level or wildcard grants
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Role, RoleWindow, User, Window
from ..validation import ValidationError
from . import audit_service
from backoffice.time_utils import utcnow


@dataclass(frozen=True)
class PermissionDescriptor:
    can_access: bool = False
    can_edit: bool = False
    is_admin: bool = False

    def to_dict(self) -> dict:
        return {
            "permission": self.can_access,
            "isEditable": self.can_edit,
            "isAdmin": self.is_admin,
        }


NO_ACCESS = PermissionDescriptor()


@dataclass(frozen=True)
class PermitResult:
    """Descriptor plus the window's display metadata (None if unknown)."""
    permit: PermissionDescriptor
    page: dict | None

    def to_dict(self) -> dict:
        return {"permit": self.permit.to_dict(), "page": self.page}


def find_window(window_ref: str | None) -> Window | None:
    """Live window by id, falling back to its access code."""
    if not window_ref:
        return None
    window = audit_service.find(Window, window_ref)
    if window is not None:
        return window
    return audit_service.active(Window).filter(Window.access == window_ref).first()


def _role_is_live(role_id: str | None) -> bool:
    return audit_service.find(Role, role_id) is not None


def grant_for(role_id: str, window_id: str) -> RoleWindow | None:
    """
    The grant that decides access for (role, window).

    (role, window) is not unique at the schema level. When duplicates
    exist the oldest grant wins and a warning is logged.
    """
    grants = (
        db.session.query(RoleWindow)
        .filter_by(role_id=role_id, window_id=window_id)
        .order_by(RoleWindow.granted_at.asc(), RoleWindow.id.asc())
        .all()
    )
    if len(grants) > 1 and has_app_context():
        current_app.logger.warning(
            "Duplicate role window grants for role=%s window=%s (%d rows)",
            role_id, window_id, len(grants),
        )
    return grants[0] if grants else None


def resolve_permission(user: User | None, window_ref: str | None) -> PermitResult:
    """Resolve what `user` may do on the window; never raises."""
    window = find_window(window_ref)
    if window is None:
        return PermitResult(permit=NO_ACCESS, page=None)

    page = window.page_dict()

    if user is None or not user.role_id or not _role_is_live(user.role_id):
        return PermitResult(permit=NO_ACCESS, page=page)

    grant = grant_for(user.role_id, window.id)
    if grant is None:
        return PermitResult(permit=NO_ACCESS, page=page)

    return PermitResult(
        permit=PermissionDescriptor(
            can_access=True,
            can_edit=bool(grant.is_edit),
            is_admin=bool(grant.is_admin),
        ),
        page=page,
    )


# =============================================================================
# Menu
# =============================================================================

def _menu_item(window: Window, children_by_parent: dict[str, list[Window]]) -> dict:
    data = window.data or {}
    item = {
        "id": window.id,
        "name": data.get("name", ""),
        "icon": data.get("icon", ""),
        "order": window.sort_order,
        "type": data.get("type", "window"),
        "url": data.get("url", ""),
    }
    if window.is_parent:
        children = sorted(children_by_parent.get(window.id, []), key=lambda w: w.sort_order)
        item["subMenu"] = [_menu_item(child, children_by_parent) for child in children]
    return item


def build_menu_tree(windows: list[Window]) -> list[dict]:
    """
    Nest a flat window list: roots are windows without a parent; a parent
    window gets a `subMenu` (possibly empty). Children whose parent is not
    in the list are dropped.
    """
    ordered = sorted(windows, key=lambda w: (w.sort_order, w.id))
    children_by_parent: dict[str, list[Window]] = {}
    for window in ordered:
        if window.parent_id:
            children_by_parent.setdefault(window.parent_id, []).append(window)

    return [_menu_item(w, children_by_parent) for w in ordered if not w.parent_id]


def menu_for_user(user: User) -> list[dict] | None:
    """Menu tree for the user's role, or None when the user has no live role."""
    if not user.role_id or not _role_is_live(user.role_id):
        return None

    window_ids = [
        row[0] for row in db.session.query(RoleWindow.window_id).filter_by(role_id=user.role_id).all()
    ]
    if not window_ids:
        return []
    windows = (
        audit_service.active(Window)
        .filter(Window.id.in_(window_ids))
        .all()
    )
    return build_menu_tree(windows)


# =============================================================================
# Role window grants
# =============================================================================

def list_role_windows(role_id: str) -> list[RoleWindow]:
    return (
        db.session.query(RoleWindow)
        .filter_by(role_id=role_id)
        .order_by(RoleWindow.granted_at.asc())
        .all()
    )


def sync_role_windows(role_id: str, items: list[dict]) -> dict:
    """
    Replace the role's grant set with `items`
    ([{"window_id", "isEdit", "isAdmin"}, ...]).

    Grants for windows not listed are removed; listed windows keep their row
    (flags updated) or get a new one. Never creates duplicates. Commits.
    """
    if audit_service.find(Role, role_id) is None:
        raise ValidationError("Validation error.", {"role_id": "does not exist"})
    if not isinstance(items, list):
        raise ValidationError("Validation error.", {"items": "must be a list"})

    wanted: dict[str, tuple[bool, bool]] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Validation error.", {f"windows.{index}": "must be an object"})
        window_id = item.get("window_id")
        if not window_id:
            raise ValidationError("Validation error.", {"window_id": "is required"})
        if audit_service.find(Window, window_id) is None:
            raise ValidationError("Validation error.", {"window_id": f"{window_id} does not exist"})
        wanted[window_id] = (bool(item.get("isEdit", False)), bool(item.get("isAdmin", False)))

    created = updated = removed = 0
    seen: set[str] = set()

    for grant in list_role_windows(role_id):
        flags = wanted.get(grant.window_id)
        if flags is None or grant.window_id in seen:
            db.session.delete(grant)
            removed += 1
            continue
        seen.add(grant.window_id)
        if (grant.is_edit, grant.is_admin) != flags:
            grant.is_edit, grant.is_admin = flags
            updated += 1

    for window_id, (is_edit, is_admin) in wanted.items():
        if window_id in seen:
            continue
        db.session.add(RoleWindow(
            role_id=role_id,
            window_id=window_id,
            is_edit=is_edit,
            is_admin=is_admin,
            granted_at=utcnow(),
        ))
        created += 1

    db.session.commit()
    return {"created": created, "updated": updated, "removed": removed}
