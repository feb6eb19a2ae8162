# Overview: Service-layer operations for sync tokens (the Auth Gate).

"""
Sync Token Management Service

WHY: Pull and push are scoped to one account by an opaque bearer token.
Tokens are cryptographically secure, hashed in the database, and expire.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute and idle timeouts (SYNC_TOKEN_*_TIMEOUT_HOURS)
- last_used_at refreshed on every authenticated request
- Revocable on logout
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SyncToken, Account
from possync.time_utils import utcnow


DEFAULT_ABSOLUTE_TIMEOUT_HOURS = 24 * 30
DEFAULT_IDLE_TIMEOUT_HOURS = 24 * 7


class AuthenticationError(Exception):
    """Missing, invalid, expired or revoked bearer token (401)."""


@dataclass
class TokenContext:
    """Account identity resolved from a bearer token."""
    account: Account
    token: SyncToken

    @property
    def account_id(self) -> str:
        return self.account.id


def _timeouts() -> tuple[timedelta, timedelta]:
    config = current_app.config
    absolute = config.get("SYNC_TOKEN_ABSOLUTE_TIMEOUT_HOURS", DEFAULT_ABSOLUTE_TIMEOUT_HOURS)
    idle = config.get("SYNC_TOKEN_IDLE_TIMEOUT_HOURS", DEFAULT_IDLE_TIMEOUT_HOURS)
    return timedelta(hours=absolute), timedelta(hours=idle)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(
    account_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SyncToken, str]:
    """
    Issue a new bearer token for an account.

    Returns (token_record, plaintext_token).
    """
    absolute_timeout, _ = _timeouts()
    plaintext_token = generate_token()
    now = utcnow()

    record = SyncToken(
        account_id=account_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout,
        user_agent=user_agent[:255] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    return record, plaintext_token


def _revoke(record: SyncToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()


def validate_token(token: str | None) -> TokenContext:
    """
    Resolve a bearer token to its account.

    Raises AuthenticationError if the token is missing, unknown, revoked,
    expired, idle too long, or the account is deactivated.

    Refreshes last_used_at on success.
    """
    if not token:
        raise AuthenticationError("missing token")

    record = db.session.query(SyncToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        raise AuthenticationError("invalid token")

    now = utcnow()
    _, idle_timeout = _timeouts()

    if record.expires_at < now:
        raise AuthenticationError("token expired")

    if now - record.last_used_at > idle_timeout:
        _revoke(record, "Idle timeout")
        raise AuthenticationError("token expired")

    account = record.account
    if not account or not account.is_active:
        _revoke(record, "Account deactivated")
        raise AuthenticationError("invalid token")

    record.last_used_at = now
    db.session.commit()

    return TokenContext(account=account, token=record)


def revoke_token(token: str, reason: str = "Logout") -> bool:
    """
    Revoke a bearer token.

    Returns True if a live token was revoked, False if not found.
    """
    record = db.session.query(SyncToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        return False
    _revoke(record, reason)
    return True


def cleanup_expired_tokens(retention_days: int = 30) -> int:
    """
    Delete expired and revoked tokens older than the retention window.

    Returns count of tokens deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    deleted = db.session.query(SyncToken).filter(
        db.or_(
            SyncToken.expires_at < now,
            SyncToken.is_revoked.is_(True),
        ),
        SyncToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
