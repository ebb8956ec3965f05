from __future__ import annotations

from typing import Any

import httpx
import pytest
from loguru import logger

from shipping_mcp.services import ClientConfig, ServiceClient


class Upstream:
    """
    Scripted provider. Each call consumes the next scripted item; the last
    item repeats. Items are httpx.Response objects, exception classes
    (raised with the request attached) or callables taking the request.
    """

    def __init__(self, *script: Any):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, type) and issubclass(item, Exception):
            raise item("simulated failure: [Errno 111] 10.0.0.7:443", request=request)
        if callable(item):
            return item(request)
        # Fresh copy so a repeated item is never a consumed response
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


class FakeSharedCache:
    """
    In-memory SharedCache double. `fail=True` makes every call raise a
    ConnectionError; an exception instance makes every call raise that.
    """

    def __init__(self, fail: bool | Exception = False):
        self.fail = fail
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            raise ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def get(self, key: str) -> Any | None:
        self._check("get")
        return self.store.get(key)

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._check("set")
        self.store[key] = value
        self.ttls[key] = ttl_seconds

    async def delete_by_prefix(self, prefix: str) -> int:
        self._check("delete")
        keys = [k for k in self.store if k.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)

    async def close(self) -> None:
        self._check("close")


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
async def make_client(sleeps: list[float]):
    clients: list[ServiceClient] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(upstream: Upstream, shared_cache: Any = None, **overrides: Any) -> ServiceClient:
        config: dict[str, Any] = {
            "service_id": "test",
            "base_url": "https://api.example.com/v1",
            "api_key": "sk_test_123",
            "timeout": 5.0,
            "max_retries": 2,
            "retry_base_delay": 0.5,
            "retry_max_delay": 10.0,
        }
        config.update(overrides)
        client = ServiceClient(
            ClientConfig(**config),
            shared_cache=shared_cache,
            transport=httpx.MockTransport(upstream.handler),
            sleep=fake_sleep,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest.fixture
def log_records():
    records: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def attempt_records(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Per-attempt records emitted by the executor."""
    return [
        r
        for r in records
        if "duration_ms" in r["extra"] and r["extra"].get("attempt", 0) >= 1
    ]


def json_response(status: int, body: Any = None, **kwargs: Any) -> httpx.Response:
    if body is None:
        return httpx.Response(status, **kwargs)
    return httpx.Response(status, json=body, **kwargs)


