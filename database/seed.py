"""
RoleGate - Bootstrap Seed

Creates the administrator role, a first administrator user and the catalog
entries guarding the permission-handle endpoints, then grants them to the
administrator role. Safe to run repeatedly.

Run:
    python -m database.seed admin
"""

import sys

from config.settings import load_access_config
from core.access.models import ResourceClass
from core.access.synchronizer import PermissionSynchronizer
from core.utils.logging_utils import get_component_logger
from database.access_store import AccessStore


logger = get_component_logger("Seed", component="store")


ADMIN_PERMISSIONS = (
    ("View Role Permissions", "PERMISSION_HANDLE_VIEW", "/permission-handle/:roleId", "GET"),
    ("Update Role Permissions", "PERMISSION_HANDLE_UPDATE", "/permission-handle/:roleId", "POST"),
    ("Check Role Permissions", "PERMISSION_HANDLE_CHECK", "/permission-handle/:roleId/check", "GET"),
)


def seed_admin(store: AccessStore, admin_role: str, username: str) -> dict:

    role = store.get_role_by_name(admin_role)
    role_id = role.id if role else store.create_role(admin_role)

    user_id = store.get_user_id(username)
    if user_id is None:
        user_id = store.create_user(username, role_id)

    permission_ids = []
    for name, code, url, method in ADMIN_PERMISSIONS:
        existing = store.find_permission_by_code(code)
        if existing:
            if not existing.active:
                logger.warning("Permission %s is deactivated; leaving it as is", code)
            permission_ids.append(existing.id)
        else:
            permission_ids.append(
                store.create_permission(name, url, code=code, http_method=method)
            )

    current = store.active_grant_ids(ResourceClass.PERMISSION, role_id)
    wanted = sorted(set(current) | set(permission_ids))

    PermissionSynchronizer(store).sync_role_permissions(
        role_id,
        {ResourceClass.PERMISSION.payload_key: wanted},
        actor_id=user_id,
    )

    logger.info("Seeded role '%s' (id=%s) with user '%s' (id=%s)", admin_role, role_id, username, user_id)
    return {"role_id": role_id, "user_id": user_id, "permission_ids": permission_ids}


if __name__ == "__main__":

    config = load_access_config()
    admin_username = sys.argv[1] if len(sys.argv) > 1 else "admin"

    result = seed_admin(
        AccessStore(config.database_path),
        config.admin_roles[0],
        admin_username
    )
    print(result)
