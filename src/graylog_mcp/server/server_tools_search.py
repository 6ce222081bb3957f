from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastmcp import FastMCP

from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_shared import run_tool

logger = logging.getLogger(__name__)


def register_search_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register message search tools."""

    @mcp.tool
    def fetch_graylog_messages(
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
        fields: Optional[str] = None,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Fetch messages from the active Graylog connection, newest first.

        Args:
            query: Free text or Graylog query syntax. Quoted for exact match unless exact_match is False
                   or the query already uses syntax such as field:value, wildcards or parentheses.
            filters: Field filters ANDed onto the query (e.g. {"env": "prod", "level": 3})
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range such as "15m", "2h", "7d" or a number of seconds. Default: 15 minutes
            from_time: Absolute start (ISO-8601 or epoch); takes precedence over time_range
            to_time: Absolute end (ISO-8601 or epoch). Default: now
            page: Page number starting at 1
            page_size: Messages per page. Default: 50
            fields: Comma-separated field names, or "*" for all fields. Default: the connection's key fields
            stream_ids: Optional stream ids to restrict the search to
        """

        return run_tool(
            "fetch_graylog_messages",
            lambda: runtime.operations().search_messages(
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                page=page,
                page_size=page_size,
                fields=fields,
                stream_ids=stream_ids,
            ),
        )

    @mcp.tool
    def get_surrounding_messages(
        message_id: Optional[str] = None,
        message_timestamp: Optional[str] = None,
        surrounding_seconds: float = 5,
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        limit: int = 50,
        fields: Optional[str] = None,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Get messages logged around a specific message, oldest first.

        Args:
            message_id: gl2_message_id of the target message (preferred; its timestamp is looked up)
            message_timestamp: ISO timestamp of the target, used when message_id is not available
            surrounding_seconds: Window in seconds on each side of the target. Default: 5
            query: Additional query to narrow the context
            filters: Field filters (e.g. {"env": "prod"})
            exact_match: Wrap plain free text in quotes (default True)
            limit: Maximum number of messages. Default: 50
            fields: Comma-separated field names, or "*" for all fields
            stream_ids: Optional stream ids to restrict the search to
        """

        return run_tool(
            "get_surrounding_messages",
            lambda: runtime.operations().get_surrounding_messages(
                message_id=message_id,
                message_timestamp=message_timestamp,
                surrounding_seconds=surrounding_seconds,
                query=query,
                filters=filters,
                exact_match=exact_match,
                limit=limit,
                fields=fields,
                stream_ids=stream_ids,
            ),
        )
