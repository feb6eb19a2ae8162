# Overview: Flask API routes for sync operations; parses input and returns JSON responses.

# backend/possync/routes/sync.py
"""
Sync API routes

ENDPOINTS:
- POST /api/sync/login   username + password -> bearer token
- GET  /api/sync/pull    full snapshot of the account
- POST /api/sync/push    full client snapshot + tombstones
- POST /api/sync/logout  revoke the presented token

Errors are always {"error": "..."} with 400, 401 or 500.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AccountError
from ..services.reconcile_service import reconcile
from ..services.snapshot_service import build_snapshot
from ..validation import ValidationError
from ..decorators import require_auth, bearer_token


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.post("/login")
def login_route():
    """
    Authenticate (registering unknown usernames when enabled) and issue a token.

    Returns {token, userId, username}.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not isinstance(username, str) or not isinstance(password, str) or not username.strip() or not password:
            return jsonify({"error": "username and password required"}), 400

        try:
            account = auth_service.authenticate(username, password)
        except AccountError as e:
            return jsonify({"error": str(e)}), 400

        if not account:
            return jsonify({"error": "Invalid credentials"}), 401

        _, token = session_service.issue_token(
            account_id=account.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "token": token,
            "userId": account.id,
            "username": account.username,
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login sync account")
        return jsonify({"error": "Internal server error"}), 500


@sync_bp.get("/pull")
@require_auth
def pull_route():
    """Return every category of the authenticated account."""
    try:
        return jsonify({"data": build_snapshot(g.account_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to build sync snapshot")
        return jsonify({"error": "Internal server error"}), 500


@sync_bp.post("/push")
@require_auth
def push_route():
    """
    Reconcile a pushed snapshot.

    Body: {"data": {<category>: [...], "storeSettings": {...}},
           "deletions": {<category>: [ids]}}
    """
    try:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "JSON object body required"}), 400

        reconcile(g.account_id, body.get("data"), body.get("deletions"))
        return jsonify({"ok": True}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reconcile sync push")
        return jsonify({"error": "Internal server error"}), 500


@sync_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token used for this request."""
    try:
        session_service.revoke_token(bearer_token())
        return jsonify({"ok": True}), 200
    except Exception:
        current_app.logger.exception("Failed to revoke sync token")
        return jsonify({"error": "Internal server error"}), 500
