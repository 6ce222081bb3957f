from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastmcp import FastMCP

from graylog_mcp.server.server_runtime import ServerRuntime
from graylog_mcp.server.server_tools_shared import run_tool

logger = logging.getLogger(__name__)


def register_aggregation_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register field aggregation, histogram and field x time tools."""

    @mcp.tool
    def list_field_values(
        field: str,
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        limit: int = 20,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        List distinct values of a field with message counts, sorted by count descending.

        Useful for discovering sources, environments, logger names or levels.

        Args:
            field: Field to list values for (e.g. "source", "env", "level")
            query: Query to scope the results
            filters: Field filters (e.g. {"env": "prod"})
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range such as "1h" or seconds. Default: 1 hour
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            limit: Maximum number of distinct values. Default: 20
            stream_ids: Optional stream ids to restrict to
        """

        return run_tool(
            "list_field_values",
            lambda: runtime.operations().list_field_values(
                field=field,
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                limit=limit,
                stream_ids=stream_ids,
            ),
        )

    @mcp.tool
    def aggregate_field(
        field: str,
        metrics: Optional[List[str]] = None,
        value_field: Optional[str] = None,
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        limit: int = 10,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Group messages by a field and compute metrics per value.

        Args:
            field: Field to group by
            metrics: Any of count, sum, avg, min, max. Default: ["count"]
            value_field: Numeric field for sum/avg/min/max (required when those are requested)
            query: Query to scope the aggregation
            filters: Field filters (e.g. {"env": "prod"})
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range such as "1h" or seconds. Default: 15 minutes
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            limit: Maximum number of groups. Default: 10
            stream_ids: Optional stream ids to restrict to
        """

        return run_tool(
            "aggregate_field",
            lambda: runtime.operations().aggregate_field(
                field=field,
                metrics=metrics,
                value_field=value_field,
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                limit=limit,
                stream_ids=stream_ids,
            ),
        )

    @mcp.tool
    def get_log_histogram(
        interval: str = "auto",
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Count messages per time bucket.

        Several payload shapes are tried in order; the result names the one that succeeded.

        Args:
            interval: Bucket size such as "1m", "5m", "1h", "1d", or "auto" to size it from the time range
            query: Query to scope the histogram
            filters: Field filters (e.g. {"level": 3})
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range such as "6h" or seconds. Default: 15 minutes
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            stream_ids: Optional stream ids to restrict to
        """

        return run_tool(
            "get_log_histogram",
            lambda: runtime.operations().histogram(
                interval=interval,
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                stream_ids=stream_ids,
            ),
        )

    @mcp.tool
    def get_field_time_aggregation(
        field: str,
        interval: str = "auto",
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        limit: int = 10,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Count messages per time bucket for each value of a field (e.g. errors per service over time).

        Args:
            field: Field whose values form the series
            interval: Bucket size such as "5m", or "auto"
            query: Query to scope the aggregation
            filters: Field filters
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range such as "1d" or seconds. Default: 15 minutes
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            limit: Maximum number of field values. Default: 10
            stream_ids: Optional stream ids to restrict to
        """

        return run_tool(
            "get_field_time_aggregation",
            lambda: runtime.operations().field_time_aggregation(
                field=field,
                interval=interval,
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                limit=limit,
                stream_ids=stream_ids,
            ),
        )

    @mcp.tool
    def debug_aggregation_query(
        kind: str = "histogram",
        field: Optional[str] = None,
        interval: str = "auto",
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        exact_match: bool = True,
        time_range: Optional[Union[str, int]] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        limit: int = 10,
        metrics: Optional[List[str]] = None,
        value_field: Optional[str] = None,
        stream_ids: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Show the payload variants an aggregation would send, in the order they are tried, without running them.

        Args:
            kind: "histogram", "field-time-aggregation" or "field-aggregation"
            field: Group field (required for field-time-aggregation and field-aggregation)
            interval: Bucket size or "auto" (histogram and field-time-aggregation)
            query: Query to scope the aggregation
            filters: Field filters
            exact_match: Wrap plain free text in quotes (default True)
            time_range: Relative range or seconds. Default: 15 minutes
            from_time: Absolute start (ISO-8601 or epoch)
            to_time: Absolute end (ISO-8601 or epoch)
            limit: Maximum number of groups
            metrics: Metrics for field-aggregation
            value_field: Numeric field for sum/avg/min/max
            stream_ids: Optional stream ids to restrict to
        """

        return run_tool(
            "debug_aggregation_query",
            lambda: runtime.operations().preview_aggregation(
                kind=kind,
                field=field,
                interval=interval,
                query=query,
                filters=filters,
                exact_match=exact_match,
                time_range=time_range,
                from_time=from_time,
                to_time=to_time,
                limit=limit,
                metrics=metrics,
                value_field=value_field,
                stream_ids=stream_ids,
            ),
        )
