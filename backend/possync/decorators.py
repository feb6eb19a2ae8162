# Overview: Request decorators for sync API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.session_service import AuthenticationError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token and establish account context.

    Sets the following Flask g attributes:
    - g.account: The authenticated Account
    - g.account_id: Its id (every query in the route is scoped by it)
    - g.token_context: The full TokenContext

    Returns 401 if the header is missing, or the token is unknown, revoked,
    expired, or belongs to a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        try:
            context = session_service.validate_token(token)
        except AuthenticationError:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.account = context.account
        g.account_id = context.account_id
        g.token_context = context

        return f(*args, **kwargs)

    return decorated_function
