"""
RoleGate - Access Errors

Every failure the authorization core can surface. Each carries a stable
`reason` code and the HTTP status the API layer maps it to.
"""


class AccessError(Exception):
    """Base class for all access-control failures."""

    reason = "access_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class Denied(AccessError):
    """Terminal authorization decision. Never retried."""

    reason = "denied"
    status_code = 403


class Unauthenticated(Denied):
    reason = "unauthenticated"
    status_code = 401


class NoPermissionForRoute(Denied):
    reason = "no_permission_for_route"

    def __init__(self, method: str, path: str):
        super().__init__(f"Access denied. No permission found for {method} {path}")
        self.method = method
        self.path = path


class InsufficientGrant(Denied):
    reason = "insufficient_grant"

    def __init__(self, role_name: str, permission_name: str):
        super().__init__(
            f"Access denied. Role '{role_name}' does not have permission "
            f"for '{permission_name}'"
        )
        self.role_name = role_name
        self.permission_name = permission_name


class RoleNotAllowed(Denied):
    reason = "role_not_allowed"

    def __init__(self, role_name: str):
        super().__init__("Access denied. Insufficient permissions")
        self.role_name = role_name


class SyncValidationError(AccessError):
    """Rejected sync payload. Raised before any store mutation."""

    reason = "validation_error"
    status_code = 400


class StoreFailure(AccessError):
    reason = "store_failure"
    status_code = 500


class TokenVerificationError(Exception):
    """Base for identity-verifier failures (missing, invalid, expired)."""
    pass
