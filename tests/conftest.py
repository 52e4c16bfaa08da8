import os
import tempfile

# Keep component log files out of the working tree.
os.environ.setdefault("ROLEGATE_LOG_DIR", tempfile.mkdtemp(prefix="rolegate-logs-"))

from types import SimpleNamespace

import pytest
from flask import Blueprint, g, jsonify

from api import create_app
from api.auth.jwt_handler import TokenVerifier, create_access_token
from api.auth.middleware import require_permission, require_permission_code
from config.settings import AccessConfig
from core.access.engine import AuthorizationEngine
from core.access.models import ResourceClass
from database.access_store import AccessStore


@pytest.fixture
def access_config(tmp_path):
    return AccessConfig(
        jwt_secret="test-secret",
        database_path=str(tmp_path / "access.db"),
        catalog_refresh_seconds=60.0,
    )


@pytest.fixture
def store(access_config):
    return AccessStore(access_config.database_path)


@pytest.fixture
def seeded(store):
    """
    Roles:        1 Super Admin, 2 Clerk, 3 District Officer,
                  4 Retired (inactive), 5 Menu Editor
    Permissions:  1-3 permission-handle endpoints, 4-7 district endpoints
    Resources:    menus, sub menus, topics and questions 1-9
    Grants:       role 1 -> 1, 2, 3; role 3 -> 7
    """

    admin_role = store.create_role("Super Admin")
    clerk_role = store.create_role("Clerk")
    officer_role = store.create_role("District Officer")
    retired_role = store.create_role("Retired", active=False)
    editor_role = store.create_role("Menu Editor")

    admin = store.create_user("admin", admin_role)
    clerk = store.create_user("clerk", clerk_role)
    officer = store.create_user("officer", officer_role)
    suspended = store.create_user("suspended", officer_role, active=False)
    retiree = store.create_user("retiree", retired_role)

    view = store.create_permission("View Role Permissions", "/permission-handle/:roleId", code="PH_VIEW", http_method="GET")
    update = store.create_permission("Update Role Permissions", "/permission-handle/:roleId", code="PH_UPDATE", http_method="POST")
    check = store.create_permission("Check Role Permissions", "/permission-handle/:roleId/check", code="PH_CHECK", http_method="GET")
    list_districts = store.create_permission("List Districts", "/cid/districts", code="CID_DISTRICT_LIST", http_method="GET")
    create_district = store.create_permission("Create District", "/cid/districts", code="CID_DISTRICT_CREATE", http_method="POST")
    district_report = store.create_permission("District Report", "/cid/districts/report", code="CID_DISTRICT_REPORT", http_method="GET")
    update_district = store.create_permission("Update District", "/cid/districts/:id", code="CID_DISTRICT_UPDATE", http_method="PUT")

    for n in range(1, 10):
        menu_id = store.create_menu(f"Menu {n}", f"/menu/{n}")
        store.create_sub_menu(menu_id, f"Sub Menu {n}", f"/menu/{n}/sub")
        topic_id = store.create_topic(f"Topic {n}")
        store.create_question(topic_id, f"Question {n}?")

    with store.transaction() as conn:
        store.activate_grants(conn, ResourceClass.PERMISSION, admin_role, [view, update, check])
        store.activate_grants(conn, ResourceClass.PERMISSION, officer_role, [update_district])

    return SimpleNamespace(
        admin_role=admin_role,
        clerk_role=clerk_role,
        officer_role=officer_role,
        retired_role=retired_role,
        editor_role=editor_role,
        admin=admin,
        clerk=clerk,
        officer=officer,
        suspended=suspended,
        retiree=retiree,
        view=view,
        update=update,
        check=check,
        list_districts=list_districts,
        create_district=create_district,
        district_report=district_report,
        update_district=update_district,
    )


@pytest.fixture
def token_for(access_config):
    def _token(user_id, **kwargs):
        return create_access_token(access_config, user_id, **kwargs)
    return _token


@pytest.fixture
def engine(store, access_config):
    return AuthorizationEngine(
        store,
        verify_token=TokenVerifier(access_config),
        config=access_config,
    )


@pytest.fixture
def app(access_config, store, seeded):
    app = create_app(config=access_config, store=store)
    app.config["TESTING"] = True

    cid = Blueprint("cid", __name__)

    @cid.route("/districts/<int:district_id>", methods=["PUT"])
    @require_permission
    def update_district(district_id):
        return jsonify({
            "district": district_id,
            "permission": g.permission.id,
            "params": g.path_params,
        })

    @cid.route("/unmapped", methods=["GET"])
    @require_permission
    def unmapped():
        return jsonify({"status": "ok"})

    @cid.route("/export", methods=["GET"])
    @require_permission_code("CID_DISTRICT_UPDATE")
    def export():
        return jsonify({"user": g.subject.user_id})

    app.register_blueprint(cid, url_prefix="/cid")
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_header(token_for):
    def _header(user_id):
        return {"Authorization": f"Bearer {token_for(user_id)}"}
    return _header
