"""
RoleGate - API Initialization

Creates Flask application instance.
Wires the access-control core and registers routes.

Usage:
    from api import create_app
    app = create_app()
"""

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging
import os

from api.extensions import init_access_control
from config.settings import AccessConfig, load_access_config
from core.access.exceptions import AccessError
from database.access_store import AccessStore


# ============================================================
# CREATE FLASK APP
# ============================================================

def create_app(config: AccessConfig = None, store: AccessStore = None):

    app = Flask(__name__)

    if config is None:
        config = load_access_config()

    # --------------------------------------------------------
    # Enable CORS
    # --------------------------------------------------------
    cors_origins_raw = os.getenv("CORS_ORIGINS", "*")
    cors_origins = (
        [origin.strip() for origin in cors_origins_raw.split(",") if origin.strip()]
        if cors_origins_raw != "*"
        else "*"
    )
    CORS(app, resources={r"/*": {"origins": cors_origins}})

    # --------------------------------------------------------
    # Basic Logging Configuration
    # --------------------------------------------------------
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s"
    )

    # --------------------------------------------------------
    # Initialize Store + Access Control
    # --------------------------------------------------------
    if store is None:
        store = AccessStore(config.database_path)

    init_access_control(app, config, store)

    # --------------------------------------------------------
    # Register Routes
    # --------------------------------------------------------
    from api.routes import register_routes
    register_routes(app)

    # --------------------------------------------------------
    # Error Handlers (JSON-safe)
    # --------------------------------------------------------
    @app.errorhandler(AccessError)
    def handle_access_error(e):
        if e.status_code >= 500:
            logging.error("Access error: %s", e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": e.name, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logging.exception("Unhandled Exception:")
        return jsonify({
            "error": "Internal Server Error",
            "message": str(e)
        }), 500

    # --------------------------------------------------------
    # Health Endpoint (Quick Ping)
    # --------------------------------------------------------
    @app.route("/", methods=["GET"])
    def root():
        return jsonify({
            "service": "RoleGate API",
            "status": "running"
        })

    return app
