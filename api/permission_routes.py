"""
Permission Handle Routes.

Endpoints:
- GET  /permission-handle/<role_id>          effective grants (?details=true)
- POST /permission-handle/<role_id>          replace grants for the role
- GET  /permission-handle/<role_id>/check    probe grant existence
- POST /permission-handle/catalog/refresh    drop compiled route templates
"""

from flask import Blueprint, g, jsonify, request

from api.auth.middleware import require_auth, require_permission, require_role_in
from api.extensions import get_access_control
from core.access.exceptions import SyncValidationError

permission_blueprint = Blueprint("permission_handle", __name__)

_PROBE_PARAMS = {
    "permissionId": "permission_id",
    "menuId": "menu_id",
    "subMenuId": "sub_menu_id",
    "topicId": "topic_id",
    "questionId": "question_id",
}


def _parse_role_id(raw: str) -> int:
    try:
        role_id = int(raw)
    except (TypeError, ValueError):
        raise SyncValidationError("Valid role ID is required")
    if role_id <= 0:
        raise SyncValidationError("Valid role ID is required")
    return role_id


def _parse_probe_args(args) -> dict:
    parsed = {}
    for param, name in _PROBE_PARAMS.items():
        raw = args.get(param)
        if raw is None or raw == "":
            continue
        try:
            parsed[name] = int(raw)
        except ValueError:
            raise SyncValidationError(f"{param} must be an integer")
    return parsed


def _ok(message: str, data, status: int = 200):
    return jsonify({"success": True, "message": message, "data": data}), status


@permission_blueprint.route("/<role_id>", methods=["GET"])
@require_auth
def get_role_permissions(role_id):
    role_id = _parse_role_id(role_id)
    synchronizer = get_access_control().synchronizer

    if request.args.get("details") == "true":
        data = synchronizer.effective_grants_with_details(role_id)
    else:
        data = synchronizer.effective_grants(role_id)

    return _ok("Role permissions retrieved successfully", data)


@permission_blueprint.route("/<role_id>", methods=["POST"])
@require_permission
def set_role_permissions(role_id):
    role_id = _parse_role_id(role_id)
    payload = request.get_json(silent=True)

    result = get_access_control().synchronizer.sync_role_permissions(
        role_id,
        payload,
        actor_id=g.subject.user_id,
    )

    return _ok("Role permissions updated successfully", result.to_dict())


@permission_blueprint.route("/<role_id>/check", methods=["GET"])
@require_auth
def check_permissions(role_id):
    role_id = _parse_role_id(role_id)
    ids = _parse_probe_args(request.args)

    results = get_access_control().probes.check(role_id, **ids)
    return _ok("Permission check completed", results)


@permission_blueprint.route("/catalog/refresh", methods=["POST"])
@require_role_in()
def refresh_catalog():
    get_access_control().engine.matcher.invalidate()
    return _ok("Permission catalog reloaded", {"refreshedBy": g.subject.user_id})
