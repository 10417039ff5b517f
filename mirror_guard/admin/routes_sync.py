"""
Admin API — Force-push approval and repository status endpoints.

Blueprint: sync_bp
Routes:
    POST /api/job/approve-sync        # approve or dismiss blocked syncs
    GET  /api/repositories            # repositories and their sync status
    GET  /api/activity                # recent activity entries

Authentication is handled in front of this server; the acting user comes
from the X-User-Id header, or DEFAULT_USER_ID for a single-user install.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from ..errors import NoPendingRepositories, ValidationError

sync_bp = Blueprint("sync", __name__)

logger = logging.getLogger(__name__)


def _services():
    return current_app.config["SERVICES"]


def _user_id():
    return request.headers.get("X-User-Id") or current_app.config.get("DEFAULT_USER_ID")


def _unauthorized():
    return jsonify({"success": False, "message": "Unauthorized"}), 401


@sync_bp.route("/job/approve-sync", methods=["POST"])
def api_approve_sync():
    """Approve (backup + sync) or dismiss repositories awaiting approval."""
    user_id = _user_id()
    if not user_id:
        return _unauthorized()

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"success": False, "message": "Request body must be a JSON object."}), 400

    try:
        result = _services().approvals.apply(
            user_id,
            body.get("repositoryIds"),
            body.get("action"),
            blocking=current_app.config.get("APPROVE_BLOCKING", False),
        )
    except ValidationError as e:
        return jsonify({"success": False, "message": e.message}), 400
    except NoPendingRepositories as e:
        return jsonify({"success": False, "message": str(e)}), 404

    logger.info(f"[approve-sync] {result.action}: {result.acted_on} repository(ies) for {user_id}")
    return jsonify({
        "success": True,
        "message": result.message,
        "acted_on": result.acted_on,
        "repositories": [r.model_dump(mode="json") for r in result.repositories],
    })


@sync_bp.route("/repositories", methods=["GET"])
def api_repositories():
    """List the user's repositories, optionally filtered by ?status=."""
    user_id = _user_id()
    if not user_id:
        return _unauthorized()

    repos = _services().repo_store.list_for_user(user_id)
    status = request.args.get("status")
    if status:
        repos = [r for r in repos if r.status.value == status]
    return jsonify({"repositories": [r.model_dump(mode="json") for r in repos]})


@sync_bp.route("/activity", methods=["GET"])
def api_activity():
    """Recent activity entries, newest last."""
    user_id = _user_id()
    if not user_id:
        return _unauthorized()

    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        return jsonify({"success": False, "message": "limit must be an integer."}), 400

    entries = _services().activity.read(
        user_id=user_id,
        repository_id=request.args.get("repositoryId"),
        limit=limit,
    )
    return jsonify({"activity": [e.model_dump(mode="json") for e in entries]})
