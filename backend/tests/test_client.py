"""
API client and its session-validation cache.

Verifies:
- Cache entries expire after the TTL and can be bypassed with force
- Permit checks are served from the cache within the TTL
- Any 401/403 clears the cache, drops the token and raises SessionExpired
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import make_role, make_user, make_window, grant, PASSWORD

from backoffice.client import ApiError, BackofficeClient, SessionCache, SessionExpired


class FakeClock:

    def __init__(self):
        self.now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _envelope(data, status=200, message="OK"):
    return httpx.Response(status, json={"success": status < 400, "data": data, "message": message})


class TestSessionCache:

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = SessionCache(ttl=timedelta(minutes=5), clock=clock)
        cache.put("permit:ORDERS", {"ok": True})

        clock.advance(minutes=4, seconds=59)
        assert cache.get("permit:ORDERS") == {"ok": True}

        clock.advance(seconds=1)
        assert cache.get("permit:ORDERS") is None
        assert len(cache) == 0

    def test_force_bypasses(self):
        cache = SessionCache(clock=FakeClock())
        cache.put("k", 1)
        assert cache.get("k", force=True) is None
        assert cache.get("k") == 1

    def test_invalidate_and_clear(self):
        cache = SessionCache(clock=FakeClock())
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.get("b") is None


class TestBackofficeClient:

    def _client(self, handler, clock=None):
        transport = httpx.MockTransport(handler)
        cache = SessionCache(clock=clock or FakeClock())
        return BackofficeClient("http://backoffice.test", token="t0k3n", cache=cache, transport=transport)

    def test_keeps_injected_empty_cache(self):
        cache = SessionCache(clock=FakeClock())
        client = BackofficeClient("http://backoffice.test", cache=cache, transport=httpx.MockTransport(lambda r: _envelope(None)))
        assert client.cache is cache

    def test_permit_is_cached(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            assert request.headers["Authorization"] == "Bearer t0k3n"
            return _envelope({"permit": {"permission": True}, "page": None, "session": {"valid": True}})

        clock = FakeClock()
        client = self._client(handler, clock)

        client.check_permit("ORDERS")
        client.check_permit("ORDERS")
        assert calls == ["/api/validation/permit/ORDERS"]

        client.check_permit("ORDERS", force=True)
        assert len(calls) == 2

        clock.advance(minutes=5)
        client.check_permit("ORDERS")
        assert len(calls) == 3

    def test_unauthorized_expires_session(self):
        def handler(request):
            return _envelope(None, status=401, message="Invalid or expired token.")

        client = self._client(handler)
        client.cache.put("permit:ORDERS", {"cached": True})

        with pytest.raises(SessionExpired) as excinfo:
            client.profile()

        assert excinfo.value.status_code == 401
        assert client.token is None
        assert len(client.cache) == 0

    def test_forbidden_expires_session(self):
        client = self._client(lambda request: _envelope(None, status=403, message="Forbidden"))
        with pytest.raises(SessionExpired):
            client.menu()

    def test_other_errors_raise_api_error(self):
        client = self._client(lambda request: _envelope({"name": "is required"}, status=422, message="Validation error."))
        with pytest.raises(ApiError) as excinfo:
            client.request("POST", "/api/transactions/orders", json={})
        assert excinfo.value.data == {"name": "is required"}
        assert client.token == "t0k3n"

    def test_login_sends_base64_credentials(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return _envelope({"token": "fresh", "user": {"id": "u1"}})

        client = self._client(handler)
        client.cache.put("permit:ORDERS", {"stale": True})
        client.login("ann@example.com", PASSWORD)

        assert base64.b64decode(seen["email"]).decode() == "ann@example.com"
        assert base64.b64decode(seen["password"]).decode() == PASSWORD
        assert client.token == "fresh"
        assert len(client.cache) == 0


def test_client_against_app(app, db_session):
    """End to end through the WSGI app."""
    role = make_role(db_session)
    window = make_window(db_session, "ORDERS", "Orders")
    grant(db_session, role, window, is_edit=True)
    make_user(db_session, name="Ann", email="ann@example.com", role=role)

    client = BackofficeClient("http://backoffice.test", transport=httpx.WSGITransport(app=app))
    client.login("ann@example.com", PASSWORD)

    permit = client.check_permit("ORDERS")
    assert permit["permit"] == {"permission": True, "isEditable": True, "isAdmin": False}
    assert [item["name"] for item in client.menu()] == ["Orders"]
    assert client.profile()["email"] == "ann@example.com"

    client.logout()
    assert client.token is None
