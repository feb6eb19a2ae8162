# Overview: HTTP client for the sync API (login, pull, push, logout).

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import httpx

from .errors import AuthError, NetworkError


class SyncApiClient:
    """
    Thin wrapper over httpx.Client that speaks the sync wire format.

    `timeout` is a total deadline per request, not only a per-read limit:
    a server trickling bytes cannot hold a caller (or an in-flight flag)
    past it.

    ERRORS:
    - 401 (any endpoint) or 400 on login -> AuthError
    - transport failure, other non-2xx, non-JSON body -> NetworkError
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.token = token
        self.account: Optional[Dict[str, Any]] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict] = None, auth_on_400: bool = False) -> Dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        try:
            with self.client.stream(method, path, headers=self._headers(), json=payload) as response:
                chunks = []
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise NetworkError(f"{method} {path} exceeded the {self.timeout}s deadline")
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        content = b"".join(chunks)

        status = response.status_code
        if status == 401 or (auth_on_400 and status == 400):
            raise AuthError(_error_message(response, content), status_code=status)
        if status >= 300:
            raise NetworkError(f"{method} {path} returned {status}: {_error_message(response, content)}", status_code=status)

        try:
            body = json.loads(content)
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned a non-JSON body", status_code=status) from e
        if not isinstance(body, dict):
            raise NetworkError(f"{method} {path} returned an unexpected body", status_code=status)
        return body

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """Authenticate and store the token. Returns {token, userId, username}."""
        body = self._request(
            "POST",
            "/api/sync/login",
            payload={"username": username, "password": password},
            auth_on_400=True,
        )
        token = body.get("token")
        if not token:
            raise AuthError("login response carried no token")
        self.token = token
        self.account = {"userId": body.get("userId"), "username": body.get("username")}
        return body

    def pull(self) -> Dict[str, Any]:
        """Fetch the account snapshot (the `data` object of the response)."""
        if not self.token:
            raise AuthError("not logged in")
        body = self._request("GET", "/api/sync/pull")
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def push(self, data: Dict[str, Any], deletions: Dict[str, list]) -> None:
        """Send the full local state plus every tombstone."""
        if not self.token:
            raise AuthError("not logged in")
        self._request("POST", "/api/sync/push", payload={"data": data, "deletions": deletions})

    def logout(self) -> None:
        """Revoke the token server-side and forget it."""
        if not self.token:
            return
        try:
            self._request("POST", "/api/sync/logout")
        finally:
            self.token = None
            self.account = None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SyncApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _error_message(response: httpx.Response, content: bytes) -> str:
    try:
        body = json.loads(content)
    except ValueError:
        return content.decode("utf-8", "replace")[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase
