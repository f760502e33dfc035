# Overview: HTTP client for the back office API with a time-boxed permit cache.

"""
Back office API client

Used by scripts and the admin panel integration tests. Permit checks are
cached per window for five minutes (bypass with force=True). Any 401/403
from the server means the session is gone: the cache is cleared, the token
dropped and SessionExpired raised so the caller can send the user back to
the login screen.
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx


class SessionExpired(Exception):
    """Raised when the server rejects the bearer token (401/403)."""

    def __init__(self, status_code: int, message: str = "Session expired"):
        super().__init__(message)
        self.status_code = status_code


class ApiError(Exception):
    """Non-success envelope that is not an auth failure."""

    def __init__(self, status_code: int, message: str, data: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionCache:
    """
    Key -> value cache whose entries expire `ttl` after they were stored.

    `clock` returns the current time; tests pass a fake one.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5), clock: Optional[Callable[[], datetime]] = None):
        self.ttl = ttl
        self.clock = clock or _now
        self._entries: Dict[str, tuple[datetime, Any]] = {}

    def get(self, key: str, force: bool = False) -> Any:
        """Cached value, or None when missing, expired or `force` is set."""
        if force:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (self.clock(), value)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def encode_credential(value: str) -> str:
    """Base64 the way the admin panel sends credentials."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


class BackofficeClient:
    """
    Thin wrapper over httpx.Client speaking the {success, data, message}
    envelope.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        cache: Optional[SessionCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.cache = cache if cache is not None else SessionCache()
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.current_user: Optional[Dict] = None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "BackofficeClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _expire(self, status_code: int, message: str) -> None:
        self.cache.clear()
        self.token = None
        self.current_user = None
        raise SessionExpired(status_code, message)

    def request(self, method: str, path: str, json: Optional[Dict] = None, params: Optional[Dict] = None) -> Any:
        """Send a request and return the envelope's `data`."""
        response = self.client.request(method, path, headers=self._headers(), json=json, params=params)
        try:
            body = response.json()
        except ValueError:
            body = {}

        message = body.get("message") or response.reason_phrase
        if response.status_code in (401, 403):
            self._expire(response.status_code, message)
        if response.is_error or not body.get("success", False):
            raise ApiError(response.status_code, message, body.get("data"))
        return body.get("data")

    def login(self, email: str, password: str, remember: bool = False) -> Dict:
        """Log in with base64 credentials and keep the bearer token."""
        response = self.client.post(
            "/api/login",
            json={
                "email": encode_credential(email),
                "password": encode_credential(password),
                "remember": remember,
            },
        )
        body = response.json()
        if response.status_code != 200 or not body.get("success"):
            raise ApiError(response.status_code, body.get("message") or "Login failed", body.get("data"))

        data = body["data"]
        self.cache.clear()
        self.token = data["token"]
        self.current_user = data.get("user")
        return data

    def logout(self) -> None:
        try:
            if self.token:
                self.request("POST", "/api/logout")
        finally:
            self.cache.clear()
            self.token = None
            self.current_user = None

    def profile(self) -> Dict:
        return self.request("GET", "/api/profile")["user"]

    def check_permit(self, window: str, force: bool = False) -> Dict:
        """
        Permit + page metadata for `window`, cached for the cache TTL.

        A 403 on a permit check still means an invalid session and expires
        the client; a window the role cannot open is a 200 with
        permit.permission = False.
        """
        key = f"permit:{window}"
        cached = self.cache.get(key, force=force)
        if cached is not None:
            return cached

        data = self.request("POST", f"/api/validation/permit/{window}")
        self.cache.put(key, data)
        return data

    def menu(self) -> list:
        return self.request("GET", "/api/general/setup/windows").get("menuList", [])
