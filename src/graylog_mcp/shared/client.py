"""HTTP client for the Graylog REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from graylog_mcp.search.errors import BackendError
from graylog_mcp.shared.config import GraylogConnection

logger = logging.getLogger(__name__)

SEARCH_SYNC_PATH = "/api/views/search/sync"
STREAMS_PATH = "/api/streams"
EVENTS_SEARCH_PATH = "/api/events/search"
EVENT_DEFINITIONS_PATH = "/api/events/definitions"
EVENT_NOTIFICATIONS_PATH = "/api/events/notifications"

REQUESTED_BY = "graylog-mcp"
DEFAULT_TIMEOUT = 30


class GraylogClient:
    """
    Thin wrapper around ``requests`` for one Graylog connection.

    Every failure (HTTP status, connection problem, undecodable body, or a
    search result reporting ``errors``) is raised as ``BackendError`` so the
    fallback executor can treat it as one failed attempt.
    """

    def __init__(
        self,
        connection: GraylogConnection,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.connection = connection
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, with_body: bool = False) -> Dict[str, str]:
        headers = {"Accept": "application/json", "X-Requested-By": REQUESTED_BY}
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.connection.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers=self._headers(with_body=payload is not None),
                auth=(self.connection.api_token, "token"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Graylog request %s %s failed: %s", method, path, exc)
            raise BackendError(None, str(exc)) from exc

        if not response.ok:
            body = _response_body(response)
            logger.error("Graylog API error %s on %s %s: %s", response.status_code, method, path, body)
            if payload is not None:
                logger.debug("Rejected payload: %s", json.dumps(payload, indent=2, default=str))
            raise BackendError(response.status_code, body)

        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(response.status_code, f"Invalid JSON in response: {exc}") from exc

    def execute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run a synchronous views search."""
        data = self._request("POST", SEARCH_SYNC_PATH, payload=payload)
        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            logger.warning("Graylog search reported %d error(s)", len(errors))
            raise BackendError(200, {"errors": errors})
        return data

    def fetch_streams(self) -> Dict[str, Any]:
        return self._request("GET", STREAMS_PATH)

    def search_events(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", EVENTS_SEARCH_PATH, payload=payload)

    def fetch_event_definitions(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = _page_params(page, per_page)
        if query:
            params["query"] = query
        return self._request("GET", EVENT_DEFINITIONS_PATH, params=params)

    def fetch_event_notifications(self, page: Optional[int] = None, per_page: Optional[int] = None) -> Dict[str, Any]:
        return self._request("GET", EVENT_NOTIFICATIONS_PATH, params=_page_params(page, per_page))


def _page_params(page: Optional[int], per_page: Optional[int]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if page:
        params["page"] = page
    if per_page:
        params["per_page"] = per_page
    return params


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["GraylogClient"]
