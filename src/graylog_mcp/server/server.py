from __future__ import annotations

import logging
import os
from typing import Optional

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_aggregations import register_aggregation_tools
from graylog_mcp.server.server_tools_connections import register_connection_tools
from graylog_mcp.server.server_tools_events import register_event_tools
from graylog_mcp.server.server_tools_saved import register_saved_search_tools
from graylog_mcp.server.server_tools_search import register_search_tools

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_server(runtime: Optional[ServerRuntime] = None) -> FastMCP:
    """Create the MCP server with every Graylog tool registered against ``runtime``."""

    runtime = runtime or ServerRuntime()
    mcp = FastMCP(name="graylog-mcp")

    register_connection_tools(mcp, runtime)
    register_search_tools(mcp, runtime)
    register_aggregation_tools(mcp, runtime)
    register_event_tools(mcp, runtime)
    register_saved_search_tools(mcp, runtime)
    return mcp


def main() -> None:
    """Entry point for launching the MCP server."""

    logger.info("🚀 Starting Graylog MCP server")

    runtime = ServerRuntime()
    mcp = build_server(runtime)
    if runtime.active_connection:
        logger.info("🔌 Active connection: %s", runtime.active_connection)
    else:
        logger.info("🔌 %d connection(s) configured, none active yet", len(runtime.registry.names()))

    transport = os.getenv("MCP_TRANSPORT", "stdio").lower()
    if transport == "sse":
        import uvicorn

        host = os.getenv("MCP_HOST", "0.0.0.0")
        port = int(os.getenv("MCP_PORT", "8080"))

        # Mount FastMCP at root so /messages/ and other endpoints work correctly
        app = mcp.http_app(path="/", transport="sse")

        @app.route("/health", methods=["GET"])
        async def healthcheck(_: Request) -> JSONResponse:
            """Lightweight endpoint used for container health checks."""

            return JSONResponse({"status": "ok", "active_connection": runtime.active_connection})

        logger.info("🌐 Running MCP server on http://%s:%s", host, port)
        logger.info("📡 SSE endpoint available at /sse")
        uvicorn.run(app, host=host, port=port)
    else:
        logger.info("📡 Running MCP server in STDIO mode")
        mcp.run()


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
