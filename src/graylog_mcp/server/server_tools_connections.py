from __future__ import annotations

import logging
from typing import Any, Dict

from fastmcp import FastMCP

from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_shared import run_tool, summarise_stream

logger = logging.getLogger(__name__)


def register_connection_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register connection selection and stream discovery tools."""

    @mcp.tool
    def list_connections() -> Dict[str, Any]:
        """List the Graylog connections configured in ~/.graylog-mcp/config.json (or GRAYLOG_MCP_CONFIG)."""

        connections = runtime.registry.summaries()
        logger.info("Listing %d configured connection(s)", len(connections))
        return {
            "connections": connections,
            "active_connection": runtime.active_connection,
            "config_path": str(runtime.config_path),
        }

    @mcp.tool
    def use_connection(name: str) -> Dict[str, Any]:
        """
        Select the Graylog instance that subsequent searches run against.

        Args:
            name: Connection name as defined in the config file
        """

        def action() -> Dict[str, Any]:
            connection = runtime.use_connection(name)
            return {"active_connection": connection.name, "base_url": connection.base_url}

        return run_tool("use_connection", action)

    @mcp.tool
    def list_streams() -> Dict[str, Any]:
        """List the streams of the active connection; stream ids can scope searches and aggregations."""

        def action() -> Dict[str, Any]:
            context = runtime.context()
            data = runtime.client_for(context.connection).fetch_streams() or {}
            streams = [summarise_stream(stream) for stream in data.get("streams") or []]
            return {"total": data.get("total", len(streams)), "streams": streams}

        return run_tool("list_streams", action)
