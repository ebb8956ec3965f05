"""
Service layer infrastructure - resilient access to provider REST APIs.

Provides:
- ServiceClient: request execution with retry/backoff and caching
- CacheManager: in-process cache with optional shared (Redis) tier
- DomainError: closed error taxonomy every failure is normalized into
"""

from shipping_mcp.services.errors import (
    DomainError,
    ErrorKind,
    ValidationError,
    BadRequestError,
    UnauthorizedError,
    NotFoundError,
    RateLimitError,
    UpstreamUnavailableError,
    RequestTimeoutError,
    TransportFailureError,
    CacheUnavailableError,
)
from shipping_mcp.services.retry import RetryPolicy, RetryState
from shipping_mcp.services.cache import (
    CacheManager,
    CacheEntry,
    CacheStats,
    MemoryCache,
    RedisCache,
    SharedCache,
    generate_key,
)
from shipping_mcp.services.client import (
    ClientConfig,
    OutboundRequest,
    Outcome,
    OutcomeKind,
    ServiceClient,
)

__all__ = [
    # Errors
    "DomainError",
    "ErrorKind",
    "ValidationError",
    "BadRequestError",
    "UnauthorizedError",
    "NotFoundError",
    "RateLimitError",
    "UpstreamUnavailableError",
    "RequestTimeoutError",
    "TransportFailureError",
    "CacheUnavailableError",
    # Retry
    "RetryPolicy",
    "RetryState",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheStats",
    "MemoryCache",
    "RedisCache",
    "SharedCache",
    "generate_key",
    # Client
    "ClientConfig",
    "OutboundRequest",
    "Outcome",
    "OutcomeKind",
    "ServiceClient",
]
