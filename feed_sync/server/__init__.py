"""MCP server package initialization"""

from feed_sync.server.app import Services, build_services, create_mcp_server

__all__ = ["Services", "build_services", "create_mcp_server"]
