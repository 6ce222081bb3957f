"""Shared utilities for MCP server tools."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from graylog_mcp.search.errors import LogSearchError

logger = logging.getLogger(__name__)


def run_tool(tool_name: str, action: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """
    Run a tool body and convert failures into the structured error dictionary.

    Args:
        tool_name: Name used in log lines
        action: Zero-argument callable producing the tool result

    Returns:
        The tool result, or ``{"error": ..., "error_type": ...}`` on failure
    """
    try:
        return action()
    except LogSearchError as exc:
        logger.info("Tool %s failed: %s", tool_name, exc.message)
        return exc.to_dict()
    except ValueError as exc:
        logger.info("Tool %s rejected input: %s", tool_name, exc)
        return {"error": str(exc), "error_type": "InvalidParameter"}


def summarise_stream(stream: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": stream.get("id"),
        "title": stream.get("title"),
        "description": stream.get("description"),
        "disabled": stream.get("disabled", False),
        "index_set_id": stream.get("index_set_id"),
    }
