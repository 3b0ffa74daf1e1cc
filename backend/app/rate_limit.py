from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from .errors import RateLimitError, error_response


@dataclass
class WindowCounter:
    started_at: float
    hits: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class FixedWindowRateLimiter:
    """Per-client request counter over fixed windows of ``window_seconds``."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, WindowCounter] = {}

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def hit(self, client_key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._windows.get(client_key)
        if window is None or now - window.started_at >= self.window_seconds:
            self._evict_expired(now)
            window = WindowCounter(started_at=now)
            self._windows[client_key] = window

        window.hits += 1
        reset_seconds = max(0, math.ceil(window.started_at + self.window_seconds - now))
        return RateLimitDecision(
            allowed=window.hits <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - window.hits),
            reset_seconds=reset_seconds,
        )

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now - window.started_at >= self.window_seconds]
        for key in expired:
            del self._windows[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.limiter.enabled:
            return await call_next(request)

        client_key = request.client.host if request.client else "unknown"
        decision = self.limiter.hit(client_key)
        if not decision.allowed:
            return error_response(
                RateLimitError("Rate limit exceeded. Please try again later."),
                headers={**decision.headers(), "Retry-After": str(decision.reset_seconds)},
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
