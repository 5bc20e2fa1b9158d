"""MCP tools for feed_sync."""
