# Overview: Client-side sync exceptions.

class SyncError(Exception):
    """Base class for sync client failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(SyncError):
    """Bad credentials, or a missing/expired/revoked token. Fatal to the request."""
    pass


class NetworkError(SyncError):
    """Transport failure or unexpected response. The next sync tick retries."""
    pass
