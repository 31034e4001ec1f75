"""
HTTP Middleware

- Security headers on every response
- Per-origin rate limiting for selected paths (only /ping by default)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flowclient_api.transport.rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
}

RATE_LIMIT_ERROR = "Too many requests, please try again later."

# Start pruning expired windows once this many callers are tracked
_PRUNE_THRESHOLD = 10_000


def add_security_headers(app: FastAPI) -> None:
    """Attach a fixed set of hardening headers to every response."""

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def add_rate_limiting(
    app: FastAPI,
    limiter: FixedWindowRateLimiter,
    paths: tuple[str, ...] = ("/ping",),
) -> None:
    """
    Reject callers exceeding the limiter's budget on the given paths.

    Callers are keyed by network origin (client host), not by anything
    they report in the request body.
    """

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        # /ping and /ping/ share one budget
        if (request.url.path.rstrip("/") or "/") not in paths:
            return await call_next(request)

        key = request.client.host if request.client else "unknown"
        if limiter.tracked_keys > _PRUNE_THRESHOLD:
            await limiter.prune()
        decision = await limiter.hit(key)

        headers = {
            "RateLimit-Limit": str(decision.limit),
            "RateLimit-Remaining": str(decision.remaining),
            "RateLimit-Reset": str(decision.reset_after_seconds),
        }

        if not decision.allowed:
            headers["Retry-After"] = str(decision.reset_after_seconds)
            return JSONResponse(
                status_code=429,
                content={"error": RATE_LIMIT_ERROR},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
