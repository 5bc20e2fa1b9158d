"""feed_sync - MCP server and update scheduler

This module wires the storage, discovery, updater and scheduler services
together, registers the feed tools on a FastMCP server and runs it with
multi-transport support (STDIO, SSE, and Streamable HTTP). The scheduler
starts with the server and stops when it shuts down.
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from typing import Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from feed_sync.config import ServerConfig, get_config
from feed_sync.logging_config import setup_logging, logger
from feed_sync.services.categorizer import NullCategorizer
from feed_sync.services.feed_discovery import FeedFinder
from feed_sync.services.feed_updater import FeedUpdater
from feed_sync.services.scheduler import Scheduler
from feed_sync.storage.database import FeedStore
from feed_sync.tools.feed_tools import build_feed_tools


@dataclass
class Services:
    """The long-lived service objects of one server process."""

    store: FeedStore
    finder: FeedFinder
    updater: FeedUpdater
    categorizer: NullCategorizer
    scheduler: Scheduler


def build_services(config: ServerConfig) -> Services:
    """Construct and connect the services described by a configuration."""
    store = FeedStore(config.db_path)
    finder = FeedFinder(
        max_depth=config.max_depth,
        timeout=config.request_timeout,
        user_agent=config.user_agent,
    )
    updater = FeedUpdater(
        store,
        min_interval=config.domain_min_interval,
        max_concurrent_hosts=config.max_concurrent_hosts,
        timeout=config.request_timeout,
        user_agent=config.user_agent,
    )
    categorizer = NullCategorizer()
    scheduler = Scheduler(
        updater,
        categorizer,
        interval=config.update_interval_seconds,
        drift_threshold=config.drift_threshold_seconds,
    )
    return Services(
        store=store,
        finder=finder,
        updater=updater,
        categorizer=categorizer,
        scheduler=scheduler,
    )


def create_mcp_server(
    config: Optional[ServerConfig] = None,
    services: Optional[Services] = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Optional server configuration
        services: Optional pre-built services (built from config if omitted)

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()
    if services is None:
        services = build_services(config)

    setup_logging(config)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")
    if dns_protection and allowed_hosts:
        logger.info(f"Allowed hosts: {allowed_hosts}")

    mcp_server = FastMCP(
        config.name or "feed_sync",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    register_tools(mcp_server, services)

    logger.info("Server initialization complete")
    return mcp_server


def register_tools(mcp_server: FastMCP, services: Services) -> None:
    """Register all feed tools with the server."""
    for tool_func in build_feed_tools(services.store, services.finder, services.updater):
        mcp_server.tool(name=tool_func.__name__)(tool_func)
        logger.info(f"Registered feed tool: {tool_func.__name__}")

    logger.info(f"Server '{mcp_server.name}' initialized")


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
@click.option(
    "--no-scheduler",
    is_flag=True,
    default=False,
    help="Do not refresh feeds periodically"
)
def main(port: int, host: str, transport: str, no_scheduler: bool) -> int:
    """Run the feed_sync server with specified transport."""
    config = get_config()
    services = build_services(config)
    server = create_mcp_server(config, services)

    async def run_server():
        """Inner async function to run the server and manage the event loop."""
        if not no_scheduler:
            services.scheduler.start()

        try:
            if transport == "stdio":
                logger.info("Starting server with STDIO transport")
                await server.run_stdio_async()
            elif transport == "sse":
                logger.info(f"Starting server with SSE transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                await server.run_sse_async()
            elif transport == "streamable-http":
                logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                server.settings.streamable_http_path = "/mcp"
                await server.run_streamable_http_async()
            else:
                raise ValueError(f"Unknown transport: {transport}")
        finally:
            services.scheduler.stop()
            await services.store.close()

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio", no_scheduler=False)


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="streamable-http", no_scheduler=False)


if __name__ == "__main__":
    sys.exit(main())
