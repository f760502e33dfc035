# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import api_error
from .services import session_service, permission_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext (user + session row)
    - g.token: the presented plaintext token (for logout)

    Returns 401 for a missing, unknown, expired or revoked token, and for
    deactivated or trashed users.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return api_error("Authentication required.", status=401)

        context = session_service.validate_session(token)
        if not context:
            return api_error("Invalid or expired token.", status=401)

        g.current_user = context.user
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_window(window_ref: str, *, edit: bool = False, admin: bool = False):
    """
    Require access to a window (by id or access code).

    edit=True additionally needs the isEdit flag, admin=True the isAdmin
    flag. Must be applied after @require_auth. Returns 403 when a flag is
    missing.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return api_error("Authentication required.", status=401)

            result = permission_service.resolve_permission(user, window_ref)
            permit = result.permit

            if not permit.can_access:
                return api_error("You do not have access to this page.", status=403)
            if edit and not permit.can_edit:
                return api_error("You do not have permission to edit this page.", status=403)
            if admin and not permit.is_admin:
                return api_error("Administrator permission required.", status=403)

            g.permit = permit
            return f(*args, **kwargs)

        return decorated_function

    return decorator
