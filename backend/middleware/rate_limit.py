"""Rate limiting middleware for the Lumiere API."""

import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory rate limiter.

    Counts are per process. In production, use Redis for distributed rate limiting.
    """

    # Prune stale client keys every 5 minutes
    _CLEANUP_INTERVAL = 300

    # Routes that call the generation backends
    AI_ROUTES = ("/api/ai/send-message", "/api/ai/start-session")
    # Brute-force sensitive routes
    AUTH_ROUTES = ("/api/auth/signup", "/api/auth/login")

    def __init__(self, app, requests_per_minute: int = 60, ai_requests_per_minute: int = 10,
                 auth_requests_per_minute: int = 5, enabled: bool = True):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.ai_requests_per_minute = ai_requests_per_minute
        self.auth_requests_per_minute = auth_requests_per_minute
        self.enabled = enabled
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._last_cleanup = time.time()

    def _get_client_id(self, request: Request) -> str:
        """Get a client identifier from the request."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_stale_keys(self) -> None:
        """Remove client keys with no recent requests."""
        now = time.time()
        if now - self._last_cleanup < self._CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        window_start = now - 60
        stale_keys = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in stale_keys:
            del self._requests[key]

    def _check_rate(self, client_id: str, limit: int) -> bool:
        """Check if client is within rate limit."""
        now = time.time()
        window_start = now - 60  # 1-minute window

        self._requests[client_id] = [
            t for t in self._requests[client_id] if t > window_start
        ]

        if len(self._requests[client_id]) >= limit:
            return False

        self._requests[client_id].append(now)
        return True

    @staticmethod
    def _too_many(detail: str) -> JSONResponse:
        return JSONResponse(status_code=429, content={"detail": detail, "error": "RateLimited"})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self.enabled or path == "/api/health":
            return await call_next(request)

        self._cleanup_stale_keys()
        client_id = self._get_client_id(request)

        if path.startswith(self.AUTH_ROUTES):
            if not self._check_rate(f"{client_id}:auth", self.auth_requests_per_minute):
                return self._too_many("Too many authentication attempts. Please wait before trying again.")

        if path.startswith(self.AI_ROUTES):
            if not self._check_rate(f"{client_id}:ai", self.ai_requests_per_minute):
                return self._too_many("AI request rate limit exceeded. Please wait before trying again.")

        if not self._check_rate(client_id, self.requests_per_minute):
            return self._too_many("Rate limit exceeded. Please wait before trying again.")

        return await call_next(request)
