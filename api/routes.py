"""
Application API routes.

Includes:
- health
- permission handle APIs (RBAC administration)
"""

from flask import jsonify


def register_routes(app):

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "service": "RoleGate API"})

    from api.permission_routes import permission_blueprint
    app.register_blueprint(permission_blueprint, url_prefix="/permission-handle")
