"""
Sync client tests.

End-to-end runs go through httpx.WSGITransport straight into the Flask app;
failure paths use httpx.MockTransport.
"""

import json
import threading
import time

import httpx
import pytest

from possync.client import AuthError, LocalStore, NetworkError, SyncApiClient, SyncSession
from possync.config import SyncClientConfig


T1 = "2024-03-05T10:00:00.000Z"
T2 = "2024-03-05T10:05:00.000Z"
T4 = "2024-03-05T10:15:00.000Z"


def client_config(**overrides):
    values = dict(
        base_url="http://testserver",
        pull_interval=3600,
        push_interval=3600,
        request_timeout=5,
        store_path=None,
    )
    values.update(overrides)
    return SyncClientConfig(**values)


@pytest.fixture
def wsgi(app, db_session):
    return httpx.WSGITransport(app=app)


def login(wsgi, username="shop-a", password="secret-a"):
    return SyncSession.login(username, password, config=client_config(), transport=wsgi)


# =============================================================================
# END-TO-END (two devices, one account)
# =============================================================================


class TestTwoDevices:
    def test_push_from_one_device_pull_on_another(self, wsgi, account):
        device_a = login(wsgi)
        device_b = login(wsgi)

        product = device_a.store.add("products", {"name": "Tea", "price": 3, "stock": 10})
        assert device_a.push_once() is True
        assert device_b.pull_once() is True

        pulled = device_b.store.get("products", product["id"])
        assert pulled["name"] == "Tea"
        assert pulled["stock"] == 10

    def test_deletion_propagates(self, wsgi, account):
        device_a = login(wsgi)
        device_b = login(wsgi)
        product = device_a.store.add("products", {"name": "Tea", "price": 3})
        device_a.push_once()
        device_b.pull_once()

        device_a.store.delete("products", product["id"])
        device_a.push_once()
        # B still holds the product and pushes it again: the tombstone wins
        device_b.push_once()
        device_b.pull_once()

        assert device_b.store.get("products", product["id"]) is None
        assert product["id"] in device_b.store.tombstones()["products"]

    def test_newer_remote_version_replaces_local(self, wsgi, account):
        device_a = login(wsgi)
        device_b = login(wsgi)
        device_b.store._collections["products"] = [
            {"id": "P1", "name": "Tea", "price": 3, "stock": 10, "createdAt": T1, "updatedAt": T1}
        ]
        device_a.store._collections["products"] = [
            {"id": "P1", "name": "Tea", "price": 3, "stock": 7, "createdAt": T1, "updatedAt": T2}
        ]
        device_a.push_once()

        device_b.pull_once()

        assert device_b.store.get("products", "P1")["stock"] == 7

    def test_coupon_usage_comes_back_from_server(self, wsgi, account):
        device = login(wsgi)
        coupon = device.store.add("coupons", {"name": "5 off", "amount": 5, "usedCount": 0})
        device.store.add("orders", {
            "total": 20,
            "paymentStatus": "paid",
            "status": "confirmed",
            "discountType": "coupon",
            "discountRuleId": coupon["id"],
            "items": [],
        })

        device.push_once()
        device.pull_once()

        assert device.store.get("coupons", coupon["id"])["usedCount"] == 1

    def test_login_bad_password(self, wsgi, account):
        with pytest.raises(AuthError):
            login(wsgi, password="wrong")

    def test_logout_revokes_token(self, wsgi, account):
        device = login(wsgi)
        token = device.api.token

        device.logout()

        stale = SyncApiClient("http://testserver", token=token, transport=wsgi)
        with pytest.raises(AuthError):
            stale.pull()


# =============================================================================
# FAILURE PATHS
# =============================================================================


def mock_session(handler, store=None, **config):
    def dispatch(request):
        if request.url.path == "/api/sync/login":
            return httpx.Response(200, json={"token": "t" * 64, "userId": "user-1", "username": "shop"})
        return handler(request)

    return SyncSession.login(
        "shop", "pw", store=store, config=client_config(**config), transport=httpx.MockTransport(dispatch)
    )


class TestFailures:
    def test_server_error_leaves_store_untouched(self):
        store = LocalStore()
        store.add("products", {"id": "P1", "name": "Tea"})
        before = store.snapshot()
        session = mock_session(lambda request: httpx.Response(500, json={"error": "Internal server error"}), store)

        assert session.pull_once() is False
        assert session.push_once() is False
        assert store.snapshot() == before

    def test_transport_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        session = mock_session(handler)

        assert session.pull_once() is False
        assert session.push_once() is False

    def test_auth_error_propagates(self):
        session = mock_session(lambda request: httpx.Response(401, json={"error": "Invalid or expired token"}))

        with pytest.raises(AuthError):
            session.pull_once()
        with pytest.raises(AuthError):
            session.push_once()

    def test_non_json_body_is_network_error(self):
        api = SyncApiClient(
            "http://testserver",
            token="t",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(NetworkError):
            api.pull()

    def test_trickling_response_hits_total_deadline(self):
        def trickle():
            for part in (b'{"data"', b": {", b"}}"):
                yield part
                time.sleep(0.15)

        api = SyncApiClient(
            "http://testserver",
            timeout=0.2,
            token="t",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=trickle())),
        )
        started = time.monotonic()
        with pytest.raises(NetworkError, match="deadline"):
            api.pull()
        assert time.monotonic() - started < 1.0

    def test_pull_with_missing_categories_keeps_local(self):
        store = LocalStore()
        store.add("customers", {"id": "C1", "name": "Li"})
        session = mock_session(
            lambda request: httpx.Response(200, json={"data": {"products": [{"id": "P9", "updatedAt": T1}]}}),
            store,
        )

        assert session.pull_once() is True
        assert store.get("customers", "C1") is not None
        assert store.get("products", "P9") is not None

    def test_push_sends_full_state_and_tombstones(self):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        store = LocalStore()
        store.add("products", {"id": "P1", "name": "Tea"})
        store.add("products", {"id": "P2", "name": "Coffee"})
        store.delete("products", "P2")
        session = mock_session(handler, store)

        assert session.push_once() is True

        (body,) = sent
        assert [p["id"] for p in body["data"]["products"]] == ["P1"]
        assert body["data"]["orders"] == []
        assert body["data"]["storeSettings"] is None
        assert body["deletions"] == {"products": ["P2"]}


# =============================================================================
# IN-FLIGHT FLAGS & TIMERS
# =============================================================================


class TestScheduling:
    def test_overlapping_pull_is_dropped(self):
        nested = []
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if len(calls) == 1:
                nested.append(session.pull_once())
            return httpx.Response(200, json={"data": {}})

        session = mock_session(handler)

        assert session.pull_once() is True
        assert nested == [False]
        assert calls == ["/api/sync/pull"]

    def test_overlapping_push_is_dropped(self):
        nested = []

        def handler(request):
            if not nested:
                nested.append(session.push_once())
            return httpx.Response(200, json={"ok": True})

        session = mock_session(handler)

        assert session.push_once() is True
        assert nested == [False]

    def test_flag_released_after_failure(self):
        session = mock_session(lambda request: httpx.Response(503))

        assert session.pull_once() is False
        assert session._pull_flag.acquire(blocking=False)
        session._pull_flag.release()

    def test_start_pulls_immediately_and_loops(self):
        pushed = threading.Event()
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path == "/api/sync/push":
                pushed.set()
                return httpx.Response(200, json={"ok": True})
            return httpx.Response(200, json={"data": {}})

        session = mock_session(handler, push_interval=0.01)
        session.start()
        try:
            assert paths[0] == "/api/sync/pull"
            assert pushed.wait(5)
            assert session.running
        finally:
            session.stop(timeout=5)

        assert not session.running

    def test_start_surfaces_auth_error(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Invalid or expired token"})

        session = mock_session(handler, pull_interval=0.01)
        with pytest.raises(AuthError):
            session.start()

    def test_auth_failure_in_loop_stops_session(self):
        state = {"calls": 0}

        def handler(request):
            state["calls"] += 1
            if state["calls"] == 1:
                return httpx.Response(200, json={"data": {}})
            return httpx.Response(401, json={"error": "Invalid or expired token"})

        session = mock_session(handler, pull_interval=0.01)
        session.start()
        for thread in list(session._threads):
            thread.join(5)

        assert not session.running
        session.stop()
