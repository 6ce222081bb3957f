from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from fastmcp import FastMCP

from graylog_mcp.search.errors import InvalidTimeRange
from graylog_mcp.search.timerange import (
    DEFAULT_RANGE_SECONDS,
    format_instant,
    parse_absolute_time,
    parse_relative_time,
)
from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_shared import run_tool
from graylog_mcp.shared.saved_searches import SAVED_PARAMS

logger = logging.getLogger(__name__)


def _replay_params(stored: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides into stored params; an overridden time kind replaces the stored one."""
    params = {key: stored[key] for key in SAVED_PARAMS if key in stored}
    for key, value in overrides.items():
        if value is not None:
            params[key] = value

    from_override = overrides.get("from_time") is not None
    to_override = overrides.get("to_time") is not None

    if from_override:
        params.pop("time_range", None)
        if not to_override:
            params.pop("to_time", None)
    elif to_override:
        if stored.get("from_time") is None:
            # Keep the stored window length, ending at the new upper bound.
            seconds = parse_relative_time(stored.get("time_range") or DEFAULT_RANGE_SECONDS)
            end = parse_absolute_time(overrides["to_time"])
            try:
                params["from_time"] = format_instant(end - timedelta(seconds=seconds))
            except OverflowError:
                raise InvalidTimeRange(
                    "to time leaves no room for the saved window", overrides["to_time"], InvalidTimeRange.MALFORMED
                ) from None
        params.pop("time_range", None)
    elif overrides.get("time_range") is not None:
        params.pop("from_time", None)
        params.pop("to_time", None)
    return params


def register_saved_search_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register tools that save and replay message searches."""

    store = runtime.saved_searches

    @mcp.tool
    def save_search(
        name: str,
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        fields: Optional[str] = None,
        stream_ids: Optional[List[str]] = None,
        exact_match: Optional[bool] = None,
        page_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Save message search parameters under a name for later reuse.

        Saving under an existing name replaces its parameters but keeps its creation time.
        """

        return run_tool(
            "save_search",
            lambda: {
                "saved": store.save(
                    name,
                    {
                        "query": query,
                        "filters": filters,
                        "time_range": time_range,
                        "from_time": from_time,
                        "to_time": to_time,
                        "fields": fields,
                        "stream_ids": stream_ids,
                        "exact_match": exact_match,
                        "page_size": page_size,
                    },
                ),
                "path": str(store.path),
            },
        )

    @mcp.tool
    def list_saved_searches() -> Dict[str, Any]:
        """List saved searches."""

        searches = store.list()
        return {"count": len(searches), "searches": searches}

    @mcp.tool
    def get_saved_search(name: str) -> Dict[str, Any]:
        """Show the stored parameters of a saved search."""

        return run_tool("get_saved_search", lambda: {"saved": store.get(name)})

    @mcp.tool
    def delete_saved_search(name: str) -> Dict[str, Any]:
        """Delete a saved search."""

        def action() -> Dict[str, Any]:
            store.get(name)
            store.delete(name)
            return {"deleted": name}

        return run_tool("delete_saved_search", action)

    @mcp.tool
    def run_saved_search(
        name: str,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run a saved search against the active connection.

        Args:
            name: Saved search name
            time_range: Overrides the stored relative range
            from_time: Overrides the stored absolute start
            to_time: Overrides the stored absolute end
            page: Page number starting at 1
            page_size: Overrides the stored page size
        """

        def action() -> Dict[str, Any]:
            stored = store.get(name)
            params = _replay_params(
                stored,
                {"time_range": time_range, "from_time": from_time, "to_time": to_time, "page_size": page_size},
            )
            logger.info("Running saved search '%s'", name)
            result = runtime.operations().search_messages(page=page, **params)
            if "error" not in result:
                result["saved_search"] = name
            return result

        return run_tool("run_saved_search", action)
