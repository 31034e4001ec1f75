# Transport Layer
# HTTP endpoints, middleware and rate limiting around the presence registry

from flowclient_api.transport.app import create_app
from flowclient_api.transport.rate_limit import FixedWindowRateLimiter, RateLimitDecision

__all__ = ["create_app", "FixedWindowRateLimiter", "RateLimitDecision"]
