# Overview: Sync session: timer-driven pull and push loops for one logged-in account.

"""
SyncSession

Created at login, torn down at logout. Owns the API client, the two
in-flight flags and the timer threads.

IN-FLIGHT FLAGS: a non-blocking Lock per direction. A trigger that cannot
acquire the flag is dropped, not queued. Every HTTP request carries a
timeout, so a hung request releases its flag when the timeout expires.

FAILURES: NetworkError is logged and swallowed; the next tick retries.
AuthError propagates from pull_once/push_once; inside the timer loops it
stops the session.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import httpx

from ..config import SyncClientConfig
from .api import SyncApiClient
from .errors import AuthError, NetworkError
from .store import LocalStore

logger = logging.getLogger(__name__)


class SyncSession:
    def __init__(self, api: SyncApiClient, store: LocalStore, config: Optional[SyncClientConfig] = None):
        self.api = api
        self.store = store
        self.config = config or SyncClientConfig()
        self._pull_flag = threading.Lock()
        self._push_flag = threading.Lock()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @classmethod
    def login(
        cls,
        username: str,
        password: str,
        store: Optional[LocalStore] = None,
        config: Optional[SyncClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "SyncSession":
        """Authenticate and build a session. Raises AuthError / NetworkError."""
        config = config or SyncClientConfig()
        api = SyncApiClient(config.base_url, timeout=config.request_timeout, transport=transport)
        try:
            api.login(username, password)
        except Exception:
            api.close()
            raise
        if store is None:
            store = LocalStore.load(config.store_path) if config.store_path else LocalStore()
        return cls(api, store, config)

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    # ------------------------------------------------------------------
    # One cycle each
    # ------------------------------------------------------------------

    def pull_once(self) -> bool:
        """
        Pull and merge. Returns True when a merge was committed, False when
        the trigger was dropped (pull in flight) or the request failed.
        """
        if not self._pull_flag.acquire(blocking=False):
            logger.debug("Pull already in flight; trigger dropped")
            return False
        try:
            data = self.api.pull()
            self.store.apply_remote(data)
            return True
        except NetworkError as e:
            logger.warning("Pull failed: %s", e)
            return False
        finally:
            self._pull_flag.release()

    def push_once(self) -> bool:
        """Push the full local state. Never mutates the local store."""
        if not self._push_flag.acquire(blocking=False):
            logger.debug("Push already in flight; trigger dropped")
            return False
        try:
            self.api.push(self.store.snapshot(), self.store.deletions_payload())
            return True
        except NetworkError as e:
            logger.warning("Push failed: %s", e)
            return False
        finally:
            self._push_flag.release()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Initial pull, then background pull and push loops."""
        if self.running:
            return
        self._stop.clear()
        self.pull_once()
        self._threads = [
            self._spawn("possync-pull", self.config.pull_interval, self.pull_once),
            self._spawn("possync-push", self.config.push_interval, self.push_once),
        ]

    def _spawn(self, name: str, interval: float, action: Callable[[], bool]) -> threading.Thread:
        thread = threading.Thread(target=self._loop, args=(interval, action), name=name, daemon=True)
        thread.start()
        return thread

    def _loop(self, interval: float, action: Callable[[], bool]) -> None:
        while not self._stop.wait(interval):
            try:
                action()
            except AuthError as e:
                logger.error("Sync stopped, authentication failed: %s", e)
                self._stop.set()
            except Exception:
                logger.exception("Unexpected sync failure")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(timeout)
        self._threads = []

    def logout(self) -> None:
        """Stop the timers, revoke the token, release the HTTP client."""
        self.stop(timeout=self.config.request_timeout)
        try:
            self.api.logout()
        except (AuthError, NetworkError) as e:
            logger.warning("Logout request failed: %s", e)
        finally:
            self.api.close()

    def __enter__(self) -> "SyncSession":
        return self

    def __exit__(self, *exc) -> None:
        self.logout()
