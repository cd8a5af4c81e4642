import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional

from fastapi import Request

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float  # epoch seconds at which the oldest request leaves the window
    retry_after: int = 0
    headers: Dict[str, str] = field(default_factory=dict)


class RateLimiter:
    """
    Sliding-window limiter keyed by an arbitrary identifier.

    Each identifier may make `requests` calls within any `window_seconds`
    span. A disabled limiter admits everything. Identifiers whose window has
    emptied are dropped, at most once per window, so memory tracks only
    recently active clients.
    """

    def __init__(
        self,
        requests: int = 200,
        window_seconds: float = 60.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.requests = requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def tracked(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        stale = [key for key, window in self._windows.items() if not window or window[-1] <= cutoff]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        if not self.enabled:
            return RateLimitResult(success=True, limit=self.requests, remaining=self.requests, reset=now)

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)

            window = self._windows.setdefault(identifier, deque())
            while window and window[0] <= now - self.window_seconds:
                window.popleft()

            allowed = len(window) < self.requests
            if allowed:
                window.append(now)

            remaining = max(0, self.requests - len(window))
            reset = (window[0] + self.window_seconds) if window else now + self.window_seconds
            if not window:
                del self._windows[identifier]

        headers = {
            "X-RateLimit-Limit": str(self.requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset)),
        }
        retry_after = 0
        if not allowed:
            retry_after = max(1, math.ceil(reset - now))
            headers["Retry-After"] = str(retry_after)

        return RateLimitResult(
            success=allowed,
            limit=self.requests,
            remaining=remaining,
            reset=reset,
            retry_after=retry_after,
            headers=headers,
        )

    def reset(self, identifier: Optional[str] = None) -> None:
        with self._lock:
            if identifier is None:
                self._windows.clear()
            else:
                self._windows.pop(identifier, None)


def client_ip(request: Request) -> str:
    """Extract the client address, preferring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return request.client.host if request.client else "unknown"
