"""
RoleGate - Access Control Extension

Holds the objects built once per application and shared by every request.
Authorization keeps no mutable per-request state here.
"""

from dataclasses import dataclass

from flask import current_app

from api.auth.jwt_handler import TokenVerifier
from config.settings import AccessConfig
from core.access import (
    AuthorizationEngine,
    PermissionProbes,
    PermissionSynchronizer,
    RouteMatcher,
)
from database.access_store import AccessStore

EXTENSION_KEY = "access_control"


@dataclass
class AccessControl:
    config: AccessConfig
    store: AccessStore
    engine: AuthorizationEngine
    synchronizer: PermissionSynchronizer
    probes: PermissionProbes


def init_access_control(app, config: AccessConfig, store: AccessStore) -> AccessControl:

    matcher = RouteMatcher(
        store,
        refresh_seconds=config.catalog_refresh_seconds,
        match_http_method=config.match_http_method,
    )

    access = AccessControl(
        config=config,
        store=store,
        engine=AuthorizationEngine(
            store,
            verify_token=TokenVerifier(config),
            matcher=matcher,
            config=config,
        ),
        synchronizer=PermissionSynchronizer(store),
        probes=PermissionProbes(store),
    )

    app.extensions[EXTENSION_KEY] = access
    return access


def get_access_control() -> AccessControl:
    return current_app.extensions[EXTENSION_KEY]
