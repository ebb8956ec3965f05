"""
ServiceClient - Async REST client with retry/backoff, response caching and
normalized errors.

Flow for one call:
    cache lookup -> (hit: done)
                 -> (miss: execute with retry loop -> success: cache write)
                                                  -> exhausted: normalize error
"""

import asyncio
import base64
import time
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, TypeVar

import httpx
from loguru import logger

from shipping_mcp.services.cache import CacheManager, SharedCache
from shipping_mcp.services.errors import (
    DomainError,
    normalize_response,
    normalize_transport_error,
)
from shipping_mcp.services.retry import RetryPolicy, RetryState, parse_retry_after
from shipping_mcp.utils import sanitize_log_data

T = TypeVar("T")

AuthStyle = Literal["bearer", "basic", "api-key"]

READ_METHODS = frozenset({"GET", "HEAD"})


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for one provider client. Never mutated after construction."""

    service_id: str
    base_url: str
    api_key: str = ""
    auth_style: AuthStyle = "bearer"
    api_key_header: str = "x-api-key"
    timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    cache_enabled: bool = True
    cache_ttl: timedelta = timedelta(minutes=5)
    cache_max_size: int = 1000
    # None caches every GET; a tuple restricts caching to these path prefixes
    cacheable_prefixes: tuple[str, ...] | None = None
    health_path: str = "/"
    user_agent: str = "shipping-mcp/0.1.0"
    headers: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError(f"{self.service_id}: base_url is required")
        if self.max_retries < 0:
            raise ValueError(f"{self.service_id}: max_retries must be >= 0")
        if self.timeout <= 0:
            raise ValueError(f"{self.service_id}: timeout must be positive")

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    def is_cacheable(self, method: str, path: str) -> bool:
        if not self.cache_enabled or method != "GET":
            return False
        if self.cacheable_prefixes is None:
            return True
        return any(path.startswith(prefix) for prefix in self.cacheable_prefixes)


@dataclass(frozen=True)
class OutboundRequest:
    """One logical call."""

    method: str
    path: str
    body: Any = None
    params: dict[str, Any] | None = None

    @property
    def is_read(self) -> bool:
        return self.method in READ_METHODS


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    CLIENT_ERROR = "client-error"
    RATE_LIMITED = "rate-limited"
    SERVER_ERROR = "server-error"
    TRANSPORT_ERROR = "transport-error"

    @property
    def retryable(self) -> bool:
        return self in (
            OutcomeKind.RATE_LIMITED,
            OutcomeKind.SERVER_ERROR,
            OutcomeKind.TRANSPORT_ERROR,
        )


@dataclass
class Outcome:
    """Classified result of a single attempt."""

    kind: OutcomeKind
    duration_ms: float
    status: int | None = None
    data: Any = None
    exception: Exception | None = None
    retry_after: float | None = None

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @classmethod
    def from_response(cls, response: httpx.Response, duration_ms: float) -> "Outcome":
        status = response.status_code
        if 200 <= status < 300:
            kind = OutcomeKind.SUCCESS
        elif status == 429:
            kind = OutcomeKind.RATE_LIMITED
        elif status >= 500:
            kind = OutcomeKind.SERVER_ERROR
        else:
            kind = OutcomeKind.CLIENT_ERROR
        return cls(
            kind=kind,
            duration_ms=duration_ms,
            status=status,
            data=_decode_body(response),
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


@dataclass
class ClientStats:
    requests: int = 0
    attempts: int = 0
    retries: int = 0
    errors: int = 0
    rate_limit_hits: int = 0
    cache_hits: int = 0
    errors_by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "attempts": self.attempts,
            "retries": self.retries,
            "errors": self.errors,
            "rate_limit_hits": self.rate_limit_hits,
            "cache_hits": self.cache_hits,
            "errors_by_kind": dict(self.errors_by_kind),
            "error_rate": (
                f"{self.errors / self.requests:.2%}" if self.requests else "0.00%"
            ),
        }


class ServiceClient:
    """
    REST client for one provider with caching, retry and error normalization.

    Usage:
        config = ClientConfig(
            service_id="easypost",
            base_url="https://api.easypost.com/v2",
            api_key="EZAK...",
            auth_style="basic",
        )
        async with ServiceClient(config) as client:
            shipment = await client.get("/shipments/shp_1")
            created = await client.post("/shipments", {"shipment": {...}})

    Failures are raised as DomainError; branch on `error.kind`.
    """

    def __init__(
        self,
        config: ClientConfig,
        cache: CacheManager | None = None,
        shared_cache: SharedCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry_policy: RetryPolicy | None = None,
        debug: bool = False,
    ):
        self.config = config
        self._transport = transport
        self._sleep = sleep
        self._retry_policy = retry_policy or config.retry_policy
        self._debug = debug
        self._stats = ClientStats()

        if cache is None and config.cache_enabled:
            cache = CacheManager(
                namespace=config.service_id,
                max_size=config.cache_max_size,
                default_ttl=config.cache_ttl,
                shared=shared_cache,
                debug=debug,
            )
        self._cache = cache

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

        logger.info(
            f"{config.service_id} client initialized "
            f"(base_url={config.base_url}, timeout={config.timeout}s, "
            f"max_retries={config.max_retries}, cache={self._cache is not None}, "
            f"shared_cache={shared_cache is not None})"
        )

    @property
    def service_id(self) -> str:
        return self.config.service_id

    @property
    def cache(self) -> CacheManager | None:
        return self._cache

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": self.config.user_agent,
            }
            headers.update(dict(self.config.headers))
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=httpx.Timeout(self.config.timeout),
                headers=headers,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http_client

    def _auth_headers(self) -> dict[str, str]:
        """Credential attached per call."""
        key = self.config.api_key
        if not key:
            return {}
        style = self.config.auth_style
        if style == "basic":
            token = base64.b64encode(f"{key}:".encode()).decode()
            return {"Authorization": f"Basic {token}"}
        if style == "api-key":
            return {self.config.api_key_header: key}
        return {"Authorization": f"Bearer {key}"}

    # Caller surface

    async def get(
        self, path: str, params: dict[str, Any] | None = None, use_cache: bool = True
    ) -> Any:
        return await self.request("GET", path, params=params, use_cache=use_cache)

    async def post(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("POST", path, body=body, params=params)

    async def put(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("PUT", path, body=body, params=params)

    async def patch(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("PATCH", path, body=body, params=params)

    async def delete(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("DELETE", path, body=body, params=params)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
        use_cache: bool = True,
        cache_ttl: timedelta | None = None,
    ) -> Any:
        """
        Make a request with caching and retries.

        Args:
            method: HTTP method
            path: Path relative to the configured base URL
            body: JSON body for writes
            params: Query parameters; None values are dropped
            use_cache: Set False to bypass the cache for this read
            cache_ttl: Override the configured TTL for this read

        Returns:
            The decoded response body

        Raises:
            DomainError: after retries are exhausted or on a non-retryable failure
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        request = OutboundRequest(
            method=method.upper(),
            path="/" + path.lstrip("/"),
            body=body,
            params=params or None,
        )
        self._stats.requests += 1

        cache_key = None
        if (
            use_cache
            and self._cache is not None
            and self.config.is_cacheable(request.method, request.path)
        ):
            cache_key = self._cache.generate_key(
                request.method, request.path, request.params
            )
            cached = await self._cache.get(cache_key)
            if cached is not None:
                self._stats.cache_hits += 1
                logger.bind(
                    service_id=self.service_id,
                    method=request.method,
                    path=request.path,
                    attempt=0,
                    duration_ms=0.0,
                    outcome="cache-hit",
                    cache_key=cache_key,
                ).debug(f"{request.method} {request.path} served from cache")
                return cached

        if request.is_read:
            data = await self.execute(request, cache_key=cache_key)
        else:
            try:
                data = await self.execute(request)
            finally:
                # A failed write may still have been applied upstream
                if self._cache is not None:
                    await self._cache.invalidate_family(request.path)

        if cache_key is not None and data is not None:
            await self._cache.set(
                cache_key,
                data,
                cache_ttl if cache_ttl is not None else self.config.cache_ttl,
            )

        return data

    async def execute(
        self, request: OutboundRequest, cache_key: str | None = None
    ) -> Any:
        """
        Run the retry loop for one request.

        Client errors fail fast; rate limiting, 5xx and transport failures
        are retried up to max_retries times with exponential backoff.
        """
        state = RetryState()
        while True:
            outcome = await self._attempt(request, state.attempt)
            self._log_attempt(request, state.attempt, outcome, cache_key)

            if outcome.kind is OutcomeKind.SUCCESS:
                return outcome.data

            if outcome.kind is OutcomeKind.RATE_LIMITED:
                self._stats.rate_limit_hits += 1
            state.last_error = outcome.kind.value

            if not self._retry_policy.should_retry(state.attempt, outcome.retryable):
                break

            state.delay = self._retry_policy.compute_delay(
                state.attempt, retry_after=outcome.retry_after
            )
            logger.bind(
                service_id=self.service_id,
                method=request.method,
                path=request.path,
                attempt=state.attempt,
                outcome=outcome.kind.value,
                delay=state.delay,
            ).warning(
                f"{request.method} {request.path} attempt {state.attempt} "
                f"failed ({outcome.kind.value}), retrying in {state.delay:.2f}s"
            )
            self._stats.retries += 1
            await self._sleep(state.delay)
            state.attempt += 1

        error = self._normalize(outcome)
        self._stats.errors += 1
        self._stats.errors_by_kind[error.kind.value] = (
            self._stats.errors_by_kind.get(error.kind.value, 0) + 1
        )
        logger.bind(
            service_id=self.service_id,
            method=request.method,
            path=request.path,
            attempts=state.attempt,
            kind=error.kind.value,
            status=error.status,
        ).error(
            f"{request.method} {request.path} failed after {state.attempt} "
            f"attempt(s): {error.kind.value}: {error.message}"
        )
        raise error

    async def _attempt(self, request: OutboundRequest, attempt: int) -> Outcome:
        """Issue one outbound call and classify it. Never raises."""
        client = await self._get_http_client()
        headers = self._auth_headers()
        headers["X-Request-ID"] = f"{self.service_id}_{uuid.uuid4().hex[:12]}"
        self._stats.attempts += 1

        if self._debug:
            logger.debug(
                f"{request.method} {request.path} attempt {attempt} "
                f"params={sanitize_log_data(request.params)} "
                f"body={sanitize_log_data(request.body)}"
            )

        start = time.perf_counter()
        try:
            # httpx timeouts apply per phase; this bounds the whole call
            response = await asyncio.wait_for(
                client.request(
                    request.method,
                    request.path,
                    params=request.params,
                    json=request.body,
                    headers=headers,
                ),
                timeout=self.config.timeout,
            )
        except (httpx.RequestError, asyncio.TimeoutError) as e:
            return Outcome(
                kind=OutcomeKind.TRANSPORT_ERROR,
                duration_ms=(time.perf_counter() - start) * 1000,
                exception=e,
            )
        return Outcome.from_response(response, (time.perf_counter() - start) * 1000)

    def _normalize(self, outcome: Outcome) -> DomainError:
        if outcome.kind is OutcomeKind.TRANSPORT_ERROR:
            return normalize_transport_error(
                outcome.exception, timeout=self.config.timeout, service_id=self.service_id
            )
        return normalize_response(
            outcome.status,
            outcome.data,
            service_id=self.service_id,
            retry_after=outcome.retry_after,
        )

    def _log_attempt(
        self,
        request: OutboundRequest,
        attempt: int,
        outcome: Outcome,
        cache_key: str | None,
    ) -> None:
        bound = logger.bind(
            service_id=self.service_id,
            method=request.method,
            path=request.path,
            attempt=attempt,
            duration_ms=round(outcome.duration_ms, 2),
            outcome=outcome.kind.value,
            status=outcome.status,
            cache_key=cache_key,
        )
        message = (
            f"{request.method} {request.path} attempt {attempt} -> "
            f"{outcome.status or outcome.kind.value} in {outcome.duration_ms:.0f}ms"
        )
        if outcome.kind is OutcomeKind.SUCCESS:
            bound.info(message)
        else:
            bound.debug(message)

    async def close(self) -> None:
        """Close the HTTP client and the shared cache connection."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        if self._cache is not None:
            await self._cache.close()
        logger.debug(f"{self.service_id} client closed")

    async def __aenter__(self) -> "ServiceClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # Health and status methods

    async def health_check(self) -> dict[str, Any]:
        """Check the provider is reachable without raising."""
        start = time.perf_counter()
        try:
            await self.get(self.config.health_path, use_cache=False)
        except DomainError as e:
            return {
                "healthy": False,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "error": e.to_dict(),
            }
        return {
            "healthy": True,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "error": None,
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "client": self._stats.to_dict(),
            "cache": self._cache.get_stats().to_dict() if self._cache else None,
            "config": {
                "base_url": self.config.base_url,
                "timeout": self.config.timeout,
                "max_retries": self.config.max_retries,
                "cache_enabled": self.config.cache_enabled,
            },
        }

    async def clear_cache(self, prefix: str | None = None) -> int:
        """Clear cache entries, optionally only those under a path prefix."""
        if self._cache is None:
            return 0
        if prefix:
            return await self._cache.invalidate(
                self._cache.generate_key("GET", prefix)
            )
        await self._cache.clear()
        return -1  # Indicates full clear
