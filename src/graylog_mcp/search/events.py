"""Event (alert) search and event definition listing."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from .errors import InvalidParameter
from .operations import TimeValue, positive_int, structured_failures
from .timerange import resolve_time_range

logger = logging.getLogger(__name__)

ALERT_FILTERS = ("include", "exclude", "only")
DEFAULT_EVENTS_PER_PAGE = 25
DEFAULT_EVENTS_SECONDS = 86400


class EventsClient(Protocol):
    def search_events(self, payload: Dict[str, Any]) -> Any: ...

    def fetch_event_definitions(
        self, page: Optional[int] = None, per_page: Optional[int] = None, query: Optional[str] = None
    ) -> Any: ...

    def fetch_event_notifications(self, page: Optional[int] = None, per_page: Optional[int] = None) -> Any: ...


def build_event_search_payload(
    query: Optional[str],
    timerange: Dict[str, Any],
    page: int,
    per_page: int,
    alerts: str,
) -> Dict[str, Any]:
    return {
        "query": (query or "").strip(),
        "page": page,
        "per_page": per_page,
        "filter": {"alerts": alerts},
        "timerange": timerange,
    }


def _as_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    if data is not None:
        logger.warning("Ignoring %s response of type %s, expected an object", what, type(data).__name__)
    return {}


def _total(data: Mapping[str, Any], default: int) -> Any:
    pagination = data.get("pagination")
    if isinstance(pagination, Mapping):
        return pagination.get("total", default)
    return default


class EventOperations:
    def __init__(self, client: EventsClient) -> None:
        self.client = client

    @structured_failures
    def search_events(
        self,
        query: Optional[str] = None,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        page: Optional[int] = 1,
        per_page: Optional[int] = DEFAULT_EVENTS_PER_PAGE,
        alerts: Optional[str] = "include",
    ) -> Dict[str, Any]:
        """Search triggered events; ``alerts`` is include, exclude or only."""
        page = positive_int("page", page, 1)
        per_page = positive_int("per_page", per_page, DEFAULT_EVENTS_PER_PAGE)
        alerts = (alerts or "include").strip().lower()
        if alerts not in ALERT_FILTERS:
            raise InvalidParameter("alerts", f"alerts must be one of: {', '.join(ALERT_FILTERS)}")

        window = resolve_time_range(
            time_range=time_range,
            last=last,
            from_time=from_time,
            to_time=to_time,
            default_seconds=DEFAULT_EVENTS_SECONDS,
        )
        payload = build_event_search_payload(query, window.to_payload(), page, per_page, alerts)
        data = _as_mapping(self.client.search_events(payload), "event search")

        events = [entry.get("event", entry) for entry in data.get("events") or [] if isinstance(entry, dict)]
        logger.info("Event search returned %d event(s)", len(events))
        return {
            "total_events": data.get("total_events", len(events)),
            "returned": len(events),
            "page": page,
            "per_page": per_page,
            "timerange": window.to_payload(),
            "events": events,
        }

    @structured_failures
    def list_event_definitions(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = _as_mapping(self.client.fetch_event_definitions(page, per_page, query), "event definitions")
        definitions = [
            {
                "id": definition.get("id"),
                "title": definition.get("title"),
                "description": definition.get("description"),
                "priority": definition.get("priority"),
                "alert": definition.get("alert"),
            }
            for definition in data.get("event_definitions") or []
            if isinstance(definition, dict)
        ]
        return {
            "total": _total(data, len(definitions)),
            "event_definitions": definitions,
        }

    @structured_failures
    def list_event_notifications(self, page: Optional[int] = None, per_page: Optional[int] = None) -> Dict[str, Any]:
        data = _as_mapping(self.client.fetch_event_notifications(page, per_page), "event notifications")
        notifications = [
            {
                "id": notification.get("id"),
                "title": notification.get("title"),
                "description": notification.get("description"),
                "type": notification["config"].get("type") if isinstance(notification.get("config"), dict) else None,
            }
            for notification in data.get("notifications") or []
            if isinstance(notification, dict)
        ]
        return {
            "total": _total(data, len(notifications)),
            "notifications": notifications,
        }


__all__ = ["EventOperations", "build_event_search_payload", "ALERT_FILTERS"]
