import pytest

from core.access.exceptions import StoreFailure, SyncValidationError
from core.access.models import RESOURCE_CLASSES, ResourceClass
from core.access.synchronizer import PermissionSynchronizer, parse_desired


@pytest.fixture
def synchronizer(store, seeded):
    return PermissionSynchronizer(store)


def _snapshot(store, role_id):
    return {
        resource_class: store.list_grants(resource_class, role_id)
        for resource_class in RESOURCE_CLASSES
    }


# ============================================================
# DIFF AND APPLY
# ============================================================

def test_sync_replaces_supplied_classes_only(synchronizer, store, seeded):
    role = seeded.editor_role
    synchronizer.sync_role_permissions(role, {
        "menu": [2, 3],
        "subMenu": [9],
        "topic": [1],
        "question": [4],
        "rolePermission": [seeded.update_district],
    })

    result = synchronizer.sync_role_permissions(role, {"menu": [1, 2], "subMenu": []})

    assert result.grants == {
        "menu": [1, 2],
        "subMenu": [],
        "topic": [1],
        "question": [4],
        "rolePermission": [seeded.update_district],
    }
    assert result.changes["menu"].activated == [1]
    assert result.changes["menu"].deactivated == [3]
    assert result.changes["subMenu"].deactivated == [9]
    assert set(result.changes) == {"menu", "subMenu"}

    menu_rows = {g.resource_id: g.active for g in store.list_grants(ResourceClass.MENU, role)}
    assert menu_rows == {1: True, 2: True, 3: False}


def test_second_identical_sync_is_a_noop(synchronizer, store, seeded):
    payload = {"menu": [5, 6], "topic": [2], "rolePermission": [seeded.view]}

    first = synchronizer.sync_role_permissions(seeded.editor_role, payload)
    before = _snapshot(store, seeded.editor_role)
    second = synchronizer.sync_role_permissions(seeded.editor_role, payload)

    assert first.changed
    assert not second.changed
    assert second.grants == first.grants
    assert _snapshot(store, seeded.editor_role) == before


def test_empty_lists_deactivate_every_class(synchronizer, store, seeded):
    role = seeded.editor_role
    synchronizer.sync_role_permissions(role, {
        "menu": [1], "subMenu": [2], "topic": [3], "question": [4], "rolePermission": [seeded.view],
    })

    result = synchronizer.sync_role_permissions(role, {
        "menu": [], "subMenu": [], "topic": [], "question": [], "rolePermission": [],
    })

    assert all(ids == [] for ids in result.grants.values())
    for resource_class in RESOURCE_CLASSES:
        rows = store.list_grants(resource_class, role)
        assert len(rows) == 1
        assert not rows[0].active


def test_reactivation_toggles_existing_row(synchronizer, store, seeded):
    role = seeded.editor_role

    synchronizer.sync_role_permissions(role, {"menu": [1]})
    synchronizer.sync_role_permissions(role, {"menu": []})
    result = synchronizer.sync_role_permissions(role, {"menu": [1]})

    rows = store.list_grants(ResourceClass.MENU, role)
    assert len(rows) == 1
    assert rows[0].active
    assert result.changes["menu"].activated == [1]


def test_duplicate_ids_collapse(synchronizer, store, seeded):
    result = synchronizer.sync_role_permissions(seeded.editor_role, {"topic": [4, 4, 4]})

    assert result.grants["topic"] == [4]
    assert len(store.list_grants(ResourceClass.TOPIC, seeded.editor_role)) == 1


def test_other_roles_are_untouched(synchronizer, store, seeded):
    synchronizer.sync_role_permissions(seeded.officer_role, {"rolePermission": []})

    assert store.active_grant_ids(ResourceClass.PERMISSION, seeded.admin_role) == [
        seeded.view, seeded.update, seeded.check
    ]


def test_legacy_payload_keys(synchronizer, seeded):
    result = synchronizer.sync_role_permissions(seeded.editor_role, {
        "SubMenu": [3],
        "Topic": [8],
        "Question": [2],
        "RolePermission": [seeded.view],
    })

    assert result.grants["subMenu"] == [3]
    assert result.grants["topic"] == [8]
    assert result.grants["question"] == [2]
    assert result.grants["rolePermission"] == [seeded.view]


def test_unknown_keys_are_ignored(synchronizer, seeded):
    result = synchronizer.sync_role_permissions(seeded.editor_role, {"dashboards": [1], "menu": [2]})

    assert result.grants["menu"] == [2]
    assert set(result.changes) == {"menu"}


# ============================================================
# VALIDATION
# ============================================================

@pytest.mark.parametrize("payload", [
    {"menu": [1, -2]},
    {"menu": [0]},
    {"topic": ["3"]},
    {"question": [1.5]},
    {"subMenu": [True]},
    {"rolePermission": None},
    {"menu": "1,2"},
    {"subMenu": [1], "SubMenu": [2]},
    ["menu", 1],
    None,
])
def test_invalid_payload_is_rejected_without_changes(synchronizer, store, seeded, payload):
    role = seeded.editor_role
    synchronizer.sync_role_permissions(role, {"menu": [7], "subMenu": [8]})
    before = _snapshot(store, role)

    with pytest.raises(SyncValidationError):
        synchronizer.sync_role_permissions(role, payload)

    assert _snapshot(store, role) == before


def test_invalid_payload_rejected_even_when_other_classes_are_valid(synchronizer, store, seeded):
    role = seeded.editor_role
    synchronizer.sync_role_permissions(role, {"menu": [1]})
    before = _snapshot(store, role)

    with pytest.raises(SyncValidationError):
        synchronizer.sync_role_permissions(role, {"menu": [2, 3], "question": [-1]})

    assert _snapshot(store, role) == before


def test_validation_message_names_class_and_values():
    with pytest.raises(SyncValidationError) as excinfo:
        parse_desired({"topic": [1, -2, "x"]})

    assert str(excinfo.value) == "Invalid IDs in topic: -2, x"
    assert excinfo.value.status_code == 400


def test_unknown_role_is_rejected(synchronizer, seeded):
    with pytest.raises(SyncValidationError, match="does not exist"):
        synchronizer.sync_role_permissions(404, {"menu": [1]})


def test_unknown_resource_ids_are_rejected(synchronizer, store, seeded):
    role = seeded.clerk_role
    synchronizer.sync_role_permissions(role, {"menu": [1]})
    before = _snapshot(store, role)

    with pytest.raises(SyncValidationError) as excinfo:
        synchronizer.sync_role_permissions(role, {"menu": [2], "rolePermission": [8, 40]})

    assert str(excinfo.value) == "Unknown IDs in rolePermission: 8, 40"
    assert _snapshot(store, role) == before


def test_grant_for_unknown_id_never_becomes_live(synchronizer, store, seeded):
    with pytest.raises(SyncValidationError):
        synchronizer.sync_role_permissions(seeded.clerk_role, {"rolePermission": [8]})

    created = store.create_permission("Purge Records", "/records/purge", code="RECORDS_PURGE")

    assert created == 8
    assert not store.has_active_grant(ResourceClass.PERMISSION, seeded.clerk_role, created)


def test_existing_grant_can_be_kept_and_removed(synchronizer, store, seeded):
    result = synchronizer.sync_role_permissions(seeded.officer_role, {
        "rolePermission": [seeded.update_district],
    })
    assert not result.changed

    result = synchronizer.sync_role_permissions(seeded.officer_role, {"rolePermission": []})
    assert result.changes["rolePermission"].deactivated == [seeded.update_district]


@pytest.mark.parametrize("role_id", [0, -3, "5", None])
def test_invalid_role_id_is_rejected(synchronizer, role_id):
    with pytest.raises(SyncValidationError):
        synchronizer.sync_role_permissions(role_id, {"menu": [1]})


# ============================================================
# ATOMICITY
# ============================================================

def test_store_failure_rolls_back_every_class(synchronizer, store, seeded, monkeypatch):
    role = seeded.editor_role
    synchronizer.sync_role_permissions(role, {"menu": [1], "topic": [5]})
    before = _snapshot(store, role)

    original = store.deactivate_grants

    def failing(conn, resource_class, *args, **kwargs):
        if resource_class is ResourceClass.TOPIC:
            raise StoreFailure("disk I/O error")
        return original(conn, resource_class, *args, **kwargs)

    monkeypatch.setattr(store, "deactivate_grants", failing)

    with pytest.raises(StoreFailure):
        synchronizer.sync_role_permissions(role, {"menu": [1, 2], "topic": []})

    assert _snapshot(store, role) == before
    assert store.active_grant_ids(ResourceClass.MENU, role) == [1]


# ============================================================
# READS
# ============================================================

def test_effective_grants(synchronizer, seeded):
    grants = synchronizer.effective_grants(seeded.admin_role)

    assert grants["rolePermission"] == [seeded.view, seeded.update, seeded.check]
    assert grants["menu"] == []


def test_effective_grants_with_details(synchronizer, store, seeded):
    menu_id = store.create_menu("Districts", "/districts")
    topic_id = store.create_topic("Crime Review", "Monthly review")
    synchronizer.sync_role_permissions(seeded.editor_role, {"menu": [menu_id], "topic": [topic_id]})

    details = synchronizer.effective_grants_with_details(seeded.editor_role)

    assert details["menu"] == [{"id": menu_id, "menu_name": "Districts", "menu_url": "/districts"}]
    assert details["topic"][0]["topic_name"] == "Crime Review"
    assert details["question"] == []


def test_details_join_sub_menus_and_questions(synchronizer, store, seeded):
    menu_id = store.create_menu("Reports")
    sub_menu_id = store.create_sub_menu(menu_id, "Monthly", "/reports/monthly")
    topic_id = store.create_topic("Arrests")
    question_id = store.create_question(topic_id, "Arrests this month?")
    synchronizer.sync_role_permissions(seeded.editor_role, {
        "subMenu": [sub_menu_id],
        "question": [question_id],
    })

    details = synchronizer.effective_grants_with_details(seeded.editor_role)

    assert details["subMenu"] == [{"id": sub_menu_id, "menu_name": "Monthly", "menu_url": "/reports/monthly"}]
    assert details["question"] == [{"id": question_id, "question": "Arrests this month?", "topic_id": topic_id}]
