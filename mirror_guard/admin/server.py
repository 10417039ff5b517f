"""
Admin Server — Flask app exposing the approval workflow.

It should sit behind the authenticating front end; never expose it directly.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from flask import Flask, g, jsonify, request

from ..services import Services, build_services
from .routes_sync import sync_bp

logger = logging.getLogger(__name__)


def create_app(
    services: Optional[Services] = None,
    project_root: Optional[Path] = None,
    default_user_id: Optional[str] = None,
) -> Flask:
    """Create the Flask application."""
    root = project_root or Path.cwd()

    app = Flask(__name__)
    app.config["PROJECT_ROOT"] = root
    app.config["SERVICES"] = services or build_services(root)
    app.config["DEFAULT_USER_ID"] = default_user_id
    app.config["APPROVE_BLOCKING"] = False

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(sync_bp, url_prefix="/api")  # /api/job/*, /api/repositories, /api/activity

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        """Return JSON for any unhandled 500 so clients never see raw HTML."""
        logger.exception(f"Unhandled 500 on {request.method} {request.path}: {e}")
        return jsonify({
            "success": False,
            "error": f"Internal server error: {str(e)}",
        }), 500

    # ── Request Logging ───────────────────────────────────────────

    @app.before_request
    def log_request_start():
        g.request_started = time.monotonic()

    @app.after_request
    def log_request_end(response):
        started = getattr(g, "request_started", None)
        if started is not None and request.path.startswith("/api/"):
            duration_ms = (time.monotonic() - started) * 1000
            logger.info(
                f"{request.method} {request.path} → {response.status_code} ({duration_ms:.0f}ms)"
            )
        return response

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5050,
    default_user_id: Optional[str] = None,
    debug: bool = False,
    services: Optional[Services] = None,
    project_root: Optional[Path] = None,
) -> None:
    """Run the admin server (localhost only by default)."""
    # Our after_request logger already reports each request.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    app = create_app(services, project_root, default_user_id)
    logger.info(f"Mirror Guard admin listening on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, use_reloader=False)
