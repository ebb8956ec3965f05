import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Awaitable

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST

from shipping_mcp.providers.base import BaseProvider
from shipping_mcp.services.errors import DomainError, ErrorKind

# Stable JSON-RPC codes per error kind
ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: INVALID_PARAMS,
    ErrorKind.BAD_REQUEST: INVALID_REQUEST,
    ErrorKind.UNAUTHORIZED: -32001,
    ErrorKind.TRANSPORT_FAILURE: -32002,
    ErrorKind.UPSTREAM_UNAVAILABLE: -32003,
    ErrorKind.NOT_FOUND: -32004,
    ErrorKind.TRANSPORT_TIMEOUT: -32008,
    ErrorKind.RATE_LIMITED: -32029,
    # Never surfaced by the client; mapped for completeness
    ErrorKind.CACHE_UNAVAILABLE: INTERNAL_ERROR,
}


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def error_envelope(error: DomainError) -> dict[str, Any]:
    return {
        "success": False,
        "error": {
            "kind": error.kind.value,
            "code": ERROR_CODES.get(error.kind, INTERNAL_ERROR),
            "message": error.message,
            "status": error.status,
            "provider_code": error.code,
            "details": error.details,
        },
    }


def internal_error_envelope() -> dict[str, Any]:
    return {
        "success": False,
        "error": {
            "kind": "internal",
            "code": INTERNAL_ERROR,
            "message": "internal error",
            "status": None,
            "provider_code": None,
            "details": {},
        },
    }


async def run_tool(operation: Awaitable[Any]) -> dict[str, Any]:
    """Await a provider call and wrap the result or failure in an envelope."""
    try:
        data = await operation
    except DomainError as e:
        return error_envelope(e)
    except Exception:
        logger.exception("Unexpected tool failure")
        return internal_error_envelope()
    return success_envelope(data)


class ToolSet(ABC):
    """MCP tools for one provider."""

    # (tool name, description) for every tool method
    TOOLS: tuple[tuple[str, str], ...] = ()
    # (uri, method name, description) for read-only resources
    RESOURCES: tuple[tuple[str, str, str], ...] = ()

    def __init__(self, provider: BaseProvider):
        self.provider = provider

    @property
    @abstractmethod
    def server_name(self) -> str: ...

    @property
    def instructions(self) -> str | None:
        return None

    async def health(self) -> dict[str, Any]:
        """Provider connectivity and client statistics."""
        status = await self.provider.health_check()
        return success_envelope(
            {
                "configured": self.provider.is_configured(),
                **status,
                "stats": self.provider.get_stats(),
            }
        )

    async def _resource(self, operation: Awaitable[Any]) -> str:
        return json.dumps(await run_tool(operation), default=str)

    def register(self, server: FastMCP) -> FastMCP:
        for name, description in self.TOOLS:
            server.add_tool(getattr(self, name), name=name, description=description)
        server.add_tool(
            self.health, name="health", description="Provider health and client stats"
        )
        for uri, method, description in self.RESOURCES:
            server.resource(uri, name=method, description=description)(
                getattr(self, method)
            )
        return server

    def build_server(self) -> FastMCP:
        provider = self.provider

        @asynccontextmanager
        async def lifespan(_server: FastMCP):
            try:
                yield {}
            finally:
                await provider.close()

        server = FastMCP(
            name=self.server_name, instructions=self.instructions, lifespan=lifespan
        )
        return self.register(server)
