"""
RoleGate - Access Control Module

Provides:
- RouteMatcher (path -> permission resolution)
- AuthorizationEngine (allow/deny decisions)
- PermissionSynchronizer (atomic role grant replacement)
- PermissionProbes (grant existence checks)

Usage:
    from core.access import AuthorizationEngine
"""

from .engine import AuthorizationEngine
from .exceptions import (
    AccessError,
    Denied,
    InsufficientGrant,
    NoPermissionForRoute,
    RoleNotAllowed,
    StoreFailure,
    SyncValidationError,
    TokenVerificationError,
    Unauthenticated,
)
from .models import Permission, ResourceClass, Role, Subject, SyncResult
from .probes import PermissionProbes
from .route_matcher import RouteMatcher, candidate_paths
from .synchronizer import PermissionSynchronizer

__all__ = [
    "AuthorizationEngine",
    "AccessError",
    "Denied",
    "InsufficientGrant",
    "NoPermissionForRoute",
    "RoleNotAllowed",
    "StoreFailure",
    "SyncValidationError",
    "TokenVerificationError",
    "Unauthenticated",
    "Permission",
    "ResourceClass",
    "Role",
    "Subject",
    "SyncResult",
    "PermissionProbes",
    "RouteMatcher",
    "candidate_paths",
    "PermissionSynchronizer",
]
