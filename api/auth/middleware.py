"""
RoleGate - Auth Middleware

Provides:
- require_auth decorator
- require_permission decorator (route-based authorization)
- require_role_in decorator (fixed role allow-list)
- require_permission_code decorator
- Automatic Bearer token validation
"""

from functools import wraps
from flask import request, jsonify, g

from api.extensions import get_access_control
from core.access.exceptions import AccessError, InsufficientGrant
from core.access.route_matcher import candidate_paths


# ============================================================
# EXTRACT TOKEN
# ============================================================

def _extract_token():
    """
    Extract Bearer token from Authorization header.
    """

    auth_header = request.headers.get("Authorization")

    if not auth_header:
        return None

    if not auth_header.startswith("Bearer "):
        return None

    return auth_header[len("Bearer "):].strip() or None


def _request_candidates():
    rule = request.url_rule.rule if request.url_rule is not None else None
    return candidate_paths(request.path, rule)


def _deny(error: AccessError):
    return jsonify(error.to_dict()), error.status_code


# ============================================================
# REQUIRE AUTH
# ============================================================

def require_auth(f):
    """
    Ensures user is authenticated and active.
    """

    @wraps(f)
    def decorated(*args, **kwargs):

        try:
            g.subject = get_access_control().engine.authenticate(_extract_token())
        except AccessError as e:
            return _deny(e)

        return f(*args, **kwargs)

    return decorated


# ============================================================
# REQUIRE PERMISSION (route based)
# ============================================================

def require_permission(f):
    """
    Resolves the request path to a catalog permission and checks that the
    caller's role holds an active grant for it.
    """

    @wraps(f)
    def decorated(*args, **kwargs):

        try:
            authorization = get_access_control().engine.authorize(
                _extract_token(),
                request.path,
                request.method,
                _request_candidates()
            )
        except AccessError as e:
            return _deny(e)

        g.subject = authorization.subject
        g.permission = authorization.permission
        g.path_params = authorization.path_params

        return f(*args, **kwargs)

    return decorated


# ============================================================
# REQUIRE ROLE IN
# ============================================================

def require_role_in(*role_names):
    """
    Ensures authenticated user's role is one of `role_names`. Without
    names, the configured admin roles are used.
    """

    def decorator(f):

        @wraps(f)
        def decorated(*args, **kwargs):

            access = get_access_control()
            allowed = role_names or access.config.admin_roles

            try:
                subject = access.engine.authenticate(_extract_token())
                g.subject = access.engine.authorize_role_in(subject, allowed)
            except AccessError as e:
                return _deny(e)

            return f(*args, **kwargs)

        return decorated

    return decorator


# ============================================================
# REQUIRE PERMISSION CODE
# ============================================================

def require_permission_code(code):
    """
    Ensures authenticated user's role holds the permission with `code`.
    """

    def decorator(f):

        @wraps(f)
        def decorated(*args, **kwargs):

            access = get_access_control()

            try:
                subject = access.engine.authenticate(_extract_token())
            except AccessError as e:
                return _deny(e)

            if not access.engine.user_has_permission_code(subject.user_id, code):
                return _deny(InsufficientGrant(subject.role_name, code))

            g.subject = subject
            return f(*args, **kwargs)

        return decorated

    return decorator
