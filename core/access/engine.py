"""
RoleGate - Authorization Engine

Composes identity verification, route matching and grant lookup into a
single allow/deny decision. Read-only: no writes happen while authorizing.

Variants:
- authorize()                route-based, per-permission grants
- authorize_role_in()        coarse allow-list of role names
- user_has_permission_code() lookup by permission code
"""

from typing import Callable, Iterable, Optional, Sequence

from core.access.exceptions import (
    InsufficientGrant,
    NoPermissionForRoute,
    RoleNotAllowed,
    TokenVerificationError,
    Unauthenticated,
)
from core.access.models import Authorization, ResourceClass, Subject
from core.access.route_matcher import RouteMatcher, candidate_paths
from core.utils.logging_utils import get_component_logger


logger = get_component_logger("AuthorizationEngine", component="authorization")


class AuthorizationEngine:

    def __init__(
        self,
        store,
        verify_token: Callable[[str], dict],
        matcher: Optional[RouteMatcher] = None,
        config=None
    ):
        """
        `verify_token` takes a raw bearer token and returns its payload, or
        raises a TokenVerificationError subclass.
        """

        self.store = store
        self.verify_token = verify_token
        self.config = config

        if matcher is None:
            matcher = RouteMatcher(
                store,
                refresh_seconds=getattr(config, "catalog_refresh_seconds", 60.0),
                match_http_method=getattr(config, "match_http_method", False),
            )
        self.matcher = matcher

    # ============================================================
    # IDENTITY
    # ============================================================

    def authenticate(self, token: Optional[str]) -> Subject:
        """
        Verify the token and load an active subject.
        """

        if not token:
            raise Unauthenticated("Access token is required")

        try:
            payload = self.verify_token(token)
        except TokenVerificationError as exc:
            raise Unauthenticated(str(exc)) from exc

        user_id = payload.get("user_id")
        if user_id is None:
            raise Unauthenticated("Invalid token payload")

        subject = self.store.get_subject(user_id)
        if subject is None or not subject.active:
            logger.warning("Rejected token for missing or inactive user %s", user_id)
            raise Unauthenticated("Invalid token or user not found")

        return subject

    # ============================================================
    # ROUTE-BASED AUTHORIZATION
    # ============================================================

    def authorize(
        self,
        token: Optional[str],
        path: str,
        method: str,
        candidates: Optional[Sequence[str]] = None
    ) -> Authorization:

        subject = self.authenticate(token)
        return self.authorize_subject(subject, path, method, candidates)

    def authorize_subject(
        self,
        subject: Subject,
        path: str,
        method: str,
        candidates: Optional[Sequence[str]] = None
    ) -> Authorization:

        method = (method or "").upper()
        paths = list(candidates) if candidates else candidate_paths(path)

        match = self.matcher.resolve(path, method, paths)
        if match is None:
            logger.warning("No permission for %s %s", method, path)
            raise NoPermissionForRoute(method, path)

        permission = match.permission
        if not self.store.has_active_grant(ResourceClass.PERMISSION, subject.role_id, permission.id):
            logger.warning(
                "Role '%s' lacks grant for '%s' (%s %s)",
                subject.role_name,
                permission.name,
                method,
                path
            )
            raise InsufficientGrant(subject.role_name, permission.name)

        return Authorization(
            subject=subject,
            permission=permission,
            matched_path=match.matched_path,
            path_params=match.path_params,
        )

    # ============================================================
    # CONSTANT-ROLE VARIANT
    # ============================================================

    def authorize_role_in(self, subject: Optional[Subject], allowed_role_names: Iterable[str]) -> Subject:

        if subject is None:
            raise Unauthenticated("Not authenticated")

        allowed = set(allowed_role_names)
        if allowed and subject.role_name not in allowed:
            logger.warning(
                "Role '%s' not in allow-list %s", subject.role_name, sorted(allowed)
            )
            raise RoleNotAllowed(subject.role_name)

        return subject

    # ============================================================
    # PERMISSION CODE CHECK
    # ============================================================

    def user_has_permission_code(self, user_id, code: str) -> bool:

        subject = self.store.get_subject(user_id)
        if subject is None or not subject.active:
            return False

        permission = self.store.find_active_permission_by_code(code)
        if permission is None:
            return False

        return self.store.has_active_grant(
            ResourceClass.PERMISSION, subject.role_id, permission.id
        )
