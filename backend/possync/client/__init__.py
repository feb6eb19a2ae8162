# backend/possync/client/__init__.py
from .api import SyncApiClient
from .errors import AuthError, NetworkError, SyncError
from .session import SyncSession
from .store import LocalStore

__all__ = [
    "AuthError",
    "LocalStore",
    "NetworkError",
    "SyncApiClient",
    "SyncError",
    "SyncSession",
]
