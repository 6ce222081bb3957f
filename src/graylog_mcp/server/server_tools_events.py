from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from fastmcp import FastMCP

from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_shared import run_tool

logger = logging.getLogger(__name__)


def register_event_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register Graylog event and alert tools."""

    @mcp.tool
    def search_events(
        query: Optional[str] = None,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        page: int = 1,
        per_page: int = 25,
        alerts: str = "include",
    ) -> Dict[str, Any]:
        """
        Search triggered events.

        Args:
            query: Event search query
            time_range: Relative range such as "1d" or seconds. Default: 1 day
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            page: Page number starting at 1
            per_page: Events per page. Default: 25
            alerts: "include" (default), "exclude" or "only"
        """

        return run_tool(
            "search_events",
            lambda: runtime.events().search_events(
                query=query,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                page=page,
                per_page=per_page,
                alerts=alerts,
            ),
        )

    @mcp.tool
    def list_event_definitions(
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List event definitions (alert rules) of the active connection."""

        return run_tool(
            "list_event_definitions",
            lambda: runtime.events().list_event_definitions(page=page, per_page=per_page, query=query),
        )

    @mcp.tool
    def list_event_notifications(page: Optional[int] = None, per_page: Optional[int] = None) -> Dict[str, Any]:
        """List event notifications configured on the active connection."""

        return run_tool(
            "list_event_notifications",
            lambda: runtime.events().list_event_notifications(page=page, per_page=per_page),
        )
