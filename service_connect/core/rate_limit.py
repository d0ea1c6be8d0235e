from __future__ import annotations

import logging
import math
import threading
from collections import defaultdict, deque
from time import monotonic

from fastapi import Request

from service_connect.core.errors import APIError
from service_connect.core.settings import get_settings

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Per-key request counter over a sliding time window, process local."""

    def __init__(self, *, window_seconds: int, max_requests: int) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def _evict(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def try_acquire(self, key: str) -> float | None:
        """Record a hit for ``key``.

        Returns ``None`` when allowed, otherwise the seconds until the oldest
        hit leaves the window.
        """
        now = monotonic()
        with self._lock:
            hits = self._hits[key]
            self._evict(hits, now)
            if len(hits) >= self.max_requests:
                return max(hits[0] + self.window_seconds - now, 0.0)
            hits.append(now)
            return None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


settings = get_settings()
auth_limiter = SlidingWindowLimiter(
    window_seconds=settings.auth_rate_limit_window_seconds,
    max_requests=settings.auth_rate_limit_max_requests,
)


def enforce_auth_rate_limit(request: Request) -> None:
    client_ip = request.client.host if request.client else "unknown"
    key = f"{client_ip}:{request.url.path}"
    retry_after = auth_limiter.try_acquire(key)
    if retry_after is not None:
        logger.warning("Rate limit exceeded key=%s retry_after=%.1f", key, retry_after)
        raise APIError(
            status_code=429,
            code="rate_limited",
            message="Too many requests from this client, try again later",
            details={"retry_after_seconds": math.ceil(retry_after)},
        )
