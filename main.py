"""
Shipping MCP entry point.

Runs the EasyPost or the Veeqo MCP server:
    python main.py easypost
    python main.py veeqo --transport streamable-http
"""

import argparse
import sys

from loguru import logger
from mcp.server.fastmcp import FastMCP

from shipping_mcp.providers import EasyPostProvider, VeeqoProvider
from shipping_mcp.services import ClientConfig, RedisCache, ServiceClient
from shipping_mcp.settings import Settings, global_settings
from shipping_mcp.tools.easypost import build_server as build_easypost_server
from shipping_mcp.tools.veeqo import build_server as build_veeqo_server

TRANSPORTS = ("stdio", "sse", "streamable-http")


def configure_logging(settings: Settings) -> None:
    """Send logs to stderr; stdout carries the stdio transport."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        serialize=settings.log_json,
        backtrace=False,
        diagnose=False,
    )


def create_client(config: ClientConfig, settings: Settings) -> ServiceClient:
    shared_cache = None
    if config.cache_enabled and settings.redis_url:
        shared_cache = RedisCache(settings.redis_url, key_prefix="shipping_mcp:")
    return ServiceClient(config, shared_cache=shared_cache)


def create_server(name: str, settings: Settings) -> FastMCP:
    if name == "easypost":
        config = settings.easypost_config()
        provider = EasyPostProvider(create_client(config, settings))
        server = build_easypost_server(provider)
    elif name == "veeqo":
        config = settings.veeqo_config()
        provider = VeeqoProvider(create_client(config, settings))
        server = build_veeqo_server(provider, settings.veeqo_webhook_secret)
    else:
        raise ValueError(f"Unknown server: {name}")

    if not provider.is_configured():
        logger.warning(f"{name} API key is not set; upstream calls will be rejected")
    return server


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run a shipping MCP server")
    parser.add_argument("server", choices=("easypost", "veeqo"))
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=global_settings.mcp_transport,
    )
    args = parser.parse_args(argv)

    configure_logging(global_settings)
    logger.info(f"Starting {args.server} MCP server ({args.transport})...")

    server = create_server(args.server, global_settings)
    try:
        server.run(transport=args.transport)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        logger.info(f"{args.server} MCP server stopped")


if __name__ == "__main__":
    main()
