"""
RoleGate - Access Models

Plain records passed between the store, the matcher, the engine and the
synchronizer. Grant tables are strongly typed per resource class; the
ResourceClass enum carries the table and column each class maps to.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ResourceClass(Enum):
    PERMISSION = "rolePermission"
    MENU = "menu"
    SUB_MENU = "subMenu"
    TOPIC = "topic"
    QUESTION = "question"

    @property
    def grant_table(self) -> str:
        return _GRANT_TABLES[self][0]

    @property
    def resource_column(self) -> str:
        return _GRANT_TABLES[self][1]

    @property
    def payload_key(self) -> str:
        return self.value


_GRANT_TABLES = {
    ResourceClass.PERMISSION: ("role_permission", "permission_id"),
    ResourceClass.MENU: ("role_menu", "menu_id"),
    ResourceClass.SUB_MENU: ("role_sub_menu", "sub_menu_id"),
    ResourceClass.TOPIC: ("role_topic", "topic_id"),
    ResourceClass.QUESTION: ("role_question", "question_id"),
}

# Order in which classes are diffed and reported.
RESOURCE_CLASSES = (
    ResourceClass.MENU,
    ResourceClass.SUB_MENU,
    ResourceClass.TOPIC,
    ResourceClass.QUESTION,
    ResourceClass.PERMISSION,
)


@dataclass(frozen=True)
class Permission:
    id: int
    name: str
    code: Optional[str]
    url_template: Optional[str]
    http_method: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class Role:
    id: int
    name: str
    active: bool = True


@dataclass(frozen=True)
class Subject:
    """Verified identity attached to a request."""

    user_id: int
    role_id: int
    role_name: str
    active: bool = True


@dataclass(frozen=True)
class Grant:
    role_id: int
    resource_class: ResourceClass
    resource_id: int
    active: bool


@dataclass(frozen=True)
class Authorization:
    """Result of a successful route-based authorization."""

    subject: Subject
    permission: Permission
    matched_path: str
    path_params: Dict[str, str] = field(default_factory=dict)


@dataclass
class ClassChange:
    activated: List[int] = field(default_factory=list)
    deactivated: List[int] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.activated and not self.deactivated


@dataclass
class SyncResult:
    role_id: int
    grants: Dict[str, List[int]]
    changes: Dict[str, ClassChange]

    @property
    def changed(self) -> bool:
        return any(not c.is_noop for c in self.changes.values())

    def to_dict(self) -> dict:
        return {
            "roleId": self.role_id,
            "grants": self.grants,
            "changes": {
                key: {"activated": c.activated, "deactivated": c.deactivated}
                for key, c in self.changes.items()
            },
        }
