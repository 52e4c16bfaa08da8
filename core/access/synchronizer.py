"""
RoleGate - Permission Synchronizer

Replaces a role's grant membership, per resource class, so that the active
grants exactly equal the desired id sets. All classes are applied in one
transaction: either every class reflects the new state or none does.

Payload semantics:
- key omitted     -> class left untouched
- key: []         -> every grant in the class is deactivated
- key: null       -> rejected
- duplicate ids collapse to a set
- newly granted ids must exist in their resource table
"""

from typing import Dict, List, Mapping, Optional, Set

from core.access.exceptions import SyncValidationError
from core.access.models import (
    RESOURCE_CLASSES,
    ClassChange,
    ResourceClass,
    SyncResult,
)
from core.utils.logging_utils import get_component_logger


logger = get_component_logger("PermissionSynchronizer", component="sync")


PAYLOAD_KEYS = {resource_class.payload_key: resource_class for resource_class in RESOURCE_CLASSES}

# Spellings accepted by older administration clients.
LEGACY_PAYLOAD_KEYS = {
    "SubMenu": ResourceClass.SUB_MENU,
    "Topic": ResourceClass.TOPIC,
    "Question": ResourceClass.QUESTION,
    "RolePermission": ResourceClass.PERMISSION,
}


# ============================================================
# VALIDATION
# ============================================================

def _is_valid_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_role_id(role_id) -> int:
    if not _is_valid_id(role_id):
        raise SyncValidationError("Valid role ID is required")
    return role_id


def parse_desired(payload) -> Dict[ResourceClass, Set[int]]:
    """
    Validate a sync payload without touching the store. Returns the desired
    id set for every class that was supplied.
    """

    if not isinstance(payload, Mapping):
        raise SyncValidationError("Permissions object is required")

    desired: Dict[ResourceClass, Set[int]] = {}
    seen_keys: Dict[ResourceClass, str] = {}

    for key, value in payload.items():
        resource_class = PAYLOAD_KEYS.get(key) or LEGACY_PAYLOAD_KEYS.get(key)
        if resource_class is None:
            logger.warning("Ignoring unknown permission class '%s'", key)
            continue

        if resource_class in seen_keys:
            raise SyncValidationError(
                f"{key} and {seen_keys[resource_class]} both set the same class"
            )
        seen_keys[resource_class] = key

        if not isinstance(value, (list, tuple)):
            raise SyncValidationError(f"{key} must be an array of IDs")

        invalid = [item for item in value if not _is_valid_id(item)]
        if invalid:
            raise SyncValidationError(
                f"Invalid IDs in {key}: {', '.join(str(item) for item in invalid)}"
            )

        desired[resource_class] = set(value)

    return desired


# ============================================================
# SYNCHRONIZER
# ============================================================

class PermissionSynchronizer:

    def __init__(self, store):
        self.store = store

    def sync_role_permissions(
        self,
        role_id: int,
        payload: Mapping,
        actor_id: Optional[int] = None
    ) -> SyncResult:

        validate_role_id(role_id)
        desired = parse_desired(payload)

        with self.store.transaction() as conn:

            if self.store.get_role(role_id, conn=conn) is None:
                raise SyncValidationError(f"Role {role_id} does not exist")

            changes: Dict[str, ClassChange] = {}

            for resource_class in RESOURCE_CLASSES:
                if resource_class not in desired:
                    continue

                current = set(self.store.active_grant_ids(resource_class, role_id, conn=conn))
                wanted = desired[resource_class]

                to_activate = sorted(wanted - current)
                to_deactivate = sorted(current - wanted)

                unknown = self.store.missing_resource_ids(resource_class, to_activate, conn=conn)
                if unknown:
                    raise SyncValidationError(
                        f"Unknown IDs in {resource_class.payload_key}: "
                        f"{', '.join(str(item) for item in unknown)}"
                    )

                if to_activate:
                    self.store.activate_grants(conn, resource_class, role_id, to_activate, actor_id)
                if to_deactivate:
                    self.store.deactivate_grants(conn, resource_class, role_id, to_deactivate, actor_id)

                changes[resource_class.payload_key] = ClassChange(
                    activated=to_activate,
                    deactivated=to_deactivate,
                )

            grants = {
                resource_class.payload_key: self.store.active_grant_ids(resource_class, role_id, conn=conn)
                for resource_class in RESOURCE_CLASSES
            }

        for key, change in changes.items():
            logger.info(
                "Role %s %s: activated=%s deactivated=%s",
                role_id,
                key,
                change.activated,
                change.deactivated
            )

        return SyncResult(role_id=role_id, grants=grants, changes=changes)

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def effective_grants(self, role_id: int) -> Dict[str, List[int]]:
        return {
            resource_class.payload_key: self.store.active_grant_ids(resource_class, role_id)
            for resource_class in RESOURCE_CLASSES
        }

    def effective_grants_with_details(self, role_id: int) -> Dict[str, List[dict]]:
        return {
            resource_class.payload_key: self.store.grant_details(resource_class, role_id)
            for resource_class in RESOURCE_CLASSES
        }
