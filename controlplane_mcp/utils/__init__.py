"""Supporting primitives shared by the discovery engine: configuration,
rate limiting, response caching and request body limits.
"""

from .body_validation import BodyLimits, BodyValidationError, body_limits_from_env, validate_request_body
from .http_cache import HttpCache, HttpCacheConfig, create_http_cache_from_env
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitExceeded, create_rate_limiter_from_env

__all__ = [
    "BodyLimits",
    "BodyValidationError",
    "body_limits_from_env",
    "validate_request_body",
    "HttpCache",
    "HttpCacheConfig",
    "create_http_cache_from_env",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitExceeded",
    "create_rate_limiter_from_env",
]
