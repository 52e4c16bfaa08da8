"""
RoleGate - Probe Queries

Direct existence checks on active grant rows, for UI capability checks.
"""

from typing import Dict, Optional

from core.access.models import ResourceClass


class PermissionProbes:

    def __init__(self, store):
        self.store = store

    def has_permission(self, role_id: int, permission_id: int) -> bool:
        return self.store.has_active_grant(ResourceClass.PERMISSION, role_id, permission_id)

    def has_menu_access(self, role_id: int, menu_id: int) -> bool:
        return self.store.has_active_grant(ResourceClass.MENU, role_id, menu_id)

    def has_sub_menu_access(self, role_id: int, sub_menu_id: int) -> bool:
        return self.store.has_active_grant(ResourceClass.SUB_MENU, role_id, sub_menu_id)

    def has_topic_access(self, role_id: int, topic_id: int) -> bool:
        return self.store.has_active_grant(ResourceClass.TOPIC, role_id, topic_id)

    def has_question_access(self, role_id: int, question_id: int) -> bool:
        return self.store.has_active_grant(ResourceClass.QUESTION, role_id, question_id)

    def check(
        self,
        role_id: int,
        permission_id: Optional[int] = None,
        menu_id: Optional[int] = None,
        sub_menu_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        question_id: Optional[int] = None
    ) -> Dict[str, bool]:
        """
        One boolean per supplied id; ids left as None are not reported.
        """

        results = {}

        if permission_id is not None:
            results["hasPermission"] = self.has_permission(role_id, permission_id)
        if menu_id is not None:
            results["hasMenuAccess"] = self.has_menu_access(role_id, menu_id)
        if sub_menu_id is not None:
            results["hasSubMenuAccess"] = self.has_sub_menu_access(role_id, sub_menu_id)
        if topic_id is not None:
            results["hasTopicAccess"] = self.has_topic_access(role_id, topic_id)
        if question_id is not None:
            results["hasQuestionAccess"] = self.has_question_access(role_id, question_id)

        return results
