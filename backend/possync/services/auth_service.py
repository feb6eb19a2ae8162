# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Account Authentication Service

WHY: Sync data is scoped to exactly one account. Logging in is also how an
account is created: the first login with an unknown username registers it
(unless SYNC_AUTO_REGISTER is disabled).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Bearer tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Account
from .identifier_service import new_id
from possync.time_utils import utcnow


class AccountError(ValueError):
    """Raised when an account cannot be created."""
    pass


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    WHY: Cost factor 12 provides good security/performance balance.
    BCRYPT_ROUNDS lowers it for tests.
    """
    if not password:
        raise AccountError("Password is required")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_account(username: str, password: str) -> Account:
    """
    Create a new account.

    Raises AccountError if the username is taken or the input is blank.
    """
    username = (username or "").strip()
    if not username:
        raise AccountError("Username is required")

    existing = db.session.query(Account).filter_by(username=username).first()
    if existing:
        raise AccountError("Username already exists")

    now = utcnow()
    account = Account(
        id=new_id("user"),
        username=username,
        password_hash=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    db.session.add(account)
    db.session.commit()
    return account


def authenticate(username: str, password: str, *, auto_register: bool | None = None) -> Account | None:
    """
    Authenticate by username and password.

    Unknown usernames are registered on the spot when auto_register is on
    (defaults to the SYNC_AUTO_REGISTER config value).

    Returns the Account if credentials are valid, None otherwise.
    Updates last_login_at on success.
    """
    if auto_register is None:
        auto_register = bool(current_app.config.get("SYNC_AUTO_REGISTER", True))

    username = (username or "").strip()
    account = db.session.query(Account).filter_by(username=username).first()

    if not account:
        if not auto_register:
            return None
        account = create_account(username, password)
        current_app.logger.info("Registered sync account %s", account.id)
    elif not account.is_active or not verify_password(password, account.password_hash):
        return None

    account.last_login_at = utcnow()
    db.session.commit()
    return account
