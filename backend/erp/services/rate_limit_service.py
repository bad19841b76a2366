# Overview: Service-layer operations for per-IP request rate limiting.

"""
Fixed-window rate limiting per client IP.

Three limits apply:
- general: every /api request, RATE_LIMIT_MAX_REQUESTS per window (15 min)
- auth: failed /api/auth requests only, AUTH_RATE_LIMIT_MAX per window
- api: business-scoped routes, API_RATE_LIMIT_MAX per minute

State lives in process memory guarded by a lock. Each worker process counts
on its own, so a multi-worker deployment allows workers * limit requests.
"""

from __future__ import annotations

import threading
import time

from flask import current_app, request

from ..error_codes import ApiError
from .security_service import client_ip, log_request_event


AUTH_PREFIX = "/api/auth"
API_PREFIXES = ("/api/businesses", "/api/excel", "/api/chatbot")
EXEMPT_PATHS = ("/api/health",)

API_WINDOW_SECONDS = 60


class FixedWindowCounter:
    """
    Counts hits per key inside windows of fixed length.

    Each entry remembers its own window length. Once the table holds
    max_entries keys, hit() drops every expired window before adding a key,
    so memory is bounded by the clients active within one window.
    """

    def __init__(self, max_entries: int = 10_000):
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._windows: dict[str, tuple[float, int, int]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _current(self, key: str, window_seconds: int, now: float) -> tuple[float, int]:
        started, count, _ = self._windows.get(key, (now, 0, window_seconds))
        if now - started >= window_seconds:
            started, count = now, 0
        return started, count

    def _sweep(self, now: float) -> None:
        expired = [
            key for key, (started, _, window_seconds) in self._windows.items()
            if now - started >= window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def count(self, key: str, window_seconds: int) -> int:
        with self._lock:
            return self._current(key, window_seconds, time.monotonic())[1]

    def hit(self, key: str, window_seconds: int) -> int:
        """Add one hit and return the new count for the window."""
        with self._lock:
            now = time.monotonic()
            if key not in self._windows and len(self._windows) >= self._max_entries:
                self._sweep(now)
            started, count = self._current(key, window_seconds, now)
            count += 1
            self._windows[key] = (started, count, window_seconds)
            return count

    def retry_after(self, key: str, window_seconds: int) -> int:
        with self._lock:
            now = time.monotonic()
            started, _ = self._current(key, window_seconds, now)
            return max(1, int(window_seconds - (now - started)))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


counter = FixedWindowCounter()


def _enabled() -> bool:
    return bool(current_app.config.get("RATE_LIMIT_ENABLED", True))


def _reject(code: str, key: str, window_seconds: int):
    retry_after = counter.retry_after(key, window_seconds)
    log_request_event("RATE_LIMIT_EXCEEDED", reason=key.split(":", 1)[0])
    raise ApiError(code, retryAfter=retry_after)


def check_request() -> None:
    """
    before_request hook: count the request against the general and api limits,
    and refuse auth requests once too many have failed.

    Raises ApiError (429) when a limit is exceeded.
    """
    path = request.path
    if not _enabled() or request.method == "OPTIONS" or not path.startswith("/api"):
        return
    if path.startswith(EXEMPT_PATHS):
        return

    cfg = current_app.config
    ip = client_ip() or "unknown"
    window = cfg["RATE_LIMIT_WINDOW_SECONDS"]

    general_key = f"general:{ip}"
    if counter.hit(general_key, window) > cfg["RATE_LIMIT_MAX_REQUESTS"]:
        _reject("ERR_RATE_001", general_key, window)

    if path.startswith(AUTH_PREFIX):
        auth_key = f"auth:{ip}"
        if counter.count(auth_key, window) >= cfg["AUTH_RATE_LIMIT_MAX"]:
            _reject("ERR_RATE_002", auth_key, window)

    if path.startswith(API_PREFIXES):
        api_key = f"api:{ip}"
        if counter.hit(api_key, API_WINDOW_SECONDS) > cfg["API_RATE_LIMIT_MAX"]:
            _reject("ERR_RATE_003", api_key, API_WINDOW_SECONDS)


def record_response(response):
    """after_request hook: failed auth requests count toward the auth limit."""
    if _enabled() and request.path.startswith(AUTH_PREFIX) and response.status_code >= 400:
        if response.status_code != 429:
            counter.hit(f"auth:{client_ip() or 'unknown'}", current_app.config["RATE_LIMIT_WINDOW_SECONDS"])
    return response


def reset() -> None:
    counter.reset()
