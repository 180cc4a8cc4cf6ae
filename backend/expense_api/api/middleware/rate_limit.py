"""
In-memory rate limiting keyed by client IP

A single process-wide dict holds one fixed window per client. Expired
windows are swept opportunistically from increment(), at most once per
sweep interval.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi.responses import JSONResponse
from starlette.requests import Request

from expense_api.core.config import settings
from expense_api.core.errors import ErrorCode, error_body
from expense_api.core.security_log import client_ip, log_security_event

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float  # epoch milliseconds


class RateLimitStore:
    def __init__(self, sweep_interval_seconds: float = settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self.sweep_interval_seconds = sweep_interval_seconds
        self._last_sweep = time.monotonic()

    def __len__(self) -> int:
        return len(self._entries)

    def increment(self, key: str, window_ms: int) -> RateLimitEntry:
        """
        Count one request for key and return the (copied) window state
        """
        now_ms = time.time() * 1000
        with self._lock:
            self._maybe_sweep(now_ms)
            entry = self._entries.get(key)
            if entry is None or now_ms > entry.reset_time:
                entry = RateLimitEntry(count=1, reset_time=now_ms + window_ms)
                self._entries[key] = entry
            else:
                entry.count += 1
            return RateLimitEntry(entry.count, entry.reset_time)

    def _maybe_sweep(self, now_ms: float) -> None:
        if time.monotonic() - self._last_sweep < self.sweep_interval_seconds:
            return
        self._last_sweep = time.monotonic()
        self._remove_expired(now_ms)

    def _remove_expired(self, now_ms: float) -> int:
        expired = [key for key, entry in self._entries.items() if now_ms > entry.reset_time]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired rate limit entries")
        return len(expired)

    def cleanup(self) -> int:
        with self._lock:
            return self._remove_expired(time.time() * 1000)

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


rate_limit_store = RateLimitStore()


def rate_limit_key(ip: str) -> str:
    return f"rate_limit:{ip}"


class RateLimiter:
    """
    HTTP middleware applying the limit to API routes

    Health checks are never limited. Errors inside the store let the
    request through.
    """

    def __init__(
        self,
        store: RateLimitStore = rate_limit_store,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
        path_prefix: str = "/api/v1",
    ):
        self.store = store
        self.max_requests = max_requests or settings.RATE_LIMIT_MAX_REQUESTS
        self.window_ms = window_ms or settings.RATE_LIMIT_WINDOW_MS
        self.path_prefix = path_prefix

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefix) and not path.rstrip("/").endswith("/health")

    async def __call__(self, request: Request, call_next):
        if not self.applies_to(request.url.path):
            return await call_next(request)

        ip = client_ip(request)
        try:
            entry = self.store.increment(rate_limit_key(ip), self.window_ms)
        except Exception as e:
            logger.error(f"Rate limit store failed, allowing request from {ip}: {e}")
            return await call_next(request)

        headers = {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(max(0, self.max_requests - entry.count)),
            "X-RateLimit-Reset": str(math.ceil(entry.reset_time / 1000)),
        }

        if entry.count > self.max_requests:
            retry_after = max(0, math.ceil((entry.reset_time - time.time() * 1000) / 1000))
            headers["Retry-After"] = str(retry_after)
            log_security_event(request, "RATE_LIMIT_EXCEEDED", {"count": entry.count, "limit": self.max_requests})
            body = error_body(
                ErrorCode.RATE_LIMIT_EXCEEDED,
                "Too many requests. Please wait and try again.",
                request_id=getattr(request.state, "request_id", None),
                details={"limit": self.max_requests, "windowMs": self.window_ms, "retryAfter": retry_after},
            )
            return JSONResponse(status_code=429, content=body, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
