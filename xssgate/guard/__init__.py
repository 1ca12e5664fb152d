"""XSSGate request guard: rate limiting and the admission middleware."""

from xssgate.guard.limiter import ADMIN_RATE_LIMIT, TokenBucketLimiter, admin_limiter
from xssgate.guard.middleware import RequestGuardMiddleware

__all__ = ["ADMIN_RATE_LIMIT", "TokenBucketLimiter", "admin_limiter", "RequestGuardMiddleware"]
