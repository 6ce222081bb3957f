"""
Caller-facing search and aggregation operations.

Each public method accepts loosely typed tool arguments, validates them before
touching the backend, and returns either a result dictionary or the
structured failure produced by ``LogSearchError.to_dict``.
"""

from __future__ import annotations

import functools
import logging
import math
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar, Union

from graylog_mcp.shared.config import SearchContext

from .errors import (
    InvalidParameter,
    InvalidTimeRange,
    LogSearchError,
    MessageNotFound,
    MissingRequiredParameter,
)
from .fallback import FallbackExecutor
from .intervals import AUTO_INTERVAL, resolve_interval
from .normalizer import ResultNormalizer
from .payloads import (
    FIELD_AGGREGATION,
    FIELD_TIME_AGGREGATION,
    HISTOGRAM,
    MESSAGE_SEARCH,
    AggregationPayloadBuilder,
    AggregationRequest,
)
from .query_builder import FieldSelection, build_query_string, normalise_stream_ids, resolve_fields
from .timerange import (
    DEFAULT_RANGE_SECONDS,
    MAX_RANGE_SECONDS,
    RelativeWindow,
    TimeWindow,
    format_instant,
    parse_absolute_time,
    resolve_time_range,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_SURROUNDING_SECONDS = 5
DEFAULT_SURROUNDING_LIMIT = 50
DEFAULT_AGGREGATION_LIMIT = 10
DEFAULT_FIELD_VALUES_LIMIT = 20
FIELD_VALUES_DEFAULT_SECONDS = 3600
MESSAGE_LOOKUP_SECONDS = 86400

TimeValue = Optional[Union[str, int, float]]
StreamIds = Optional[Union[str, Sequence[str]]]

F = TypeVar("F", bound=Callable[..., Dict[str, Any]])


class BackendClient(Protocol):
    def execute(self, payload: Dict[str, Any]) -> Any: ...


def structured_failures(func: F) -> F:
    """Turn ``LogSearchError`` into the tool-level failure dictionary."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        try:
            return func(*args, **kwargs)
        except LogSearchError as exc:
            logger.info("%s failed: %s", func.__name__, exc.message)
            return exc.to_dict()

    return wrapper  # type: ignore[return-value]


def positive_int(name: str, value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidParameter(name, f"{name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidParameter(name, f"{name} must be a positive integer") from None
    if number < 1:
        raise InvalidParameter(name, f"{name} must be a positive integer")
    return number


def _parse_metrics(metrics: Optional[Union[str, Sequence[str]]]) -> List[str]:
    if metrics is None:
        return ["count"]
    candidates = metrics.split(",") if isinstance(metrics, str) else list(metrics)
    names: List[str] = []
    for candidate in candidates:
        name = str(candidate).strip().lower()
        if name and name not in names:
            names.append(name)
    return names or ["count"]


def _require_field(field: Optional[str]) -> str:
    if not field or not str(field).strip():
        raise MissingRequiredParameter("field", "A field to group by is required")
    return str(field).strip()


class SearchOperations:
    """Search, message context and aggregation operations for one connection."""

    def __init__(
        self,
        context: SearchContext,
        client: BackendClient,
        builder: Optional[AggregationPayloadBuilder] = None,
    ) -> None:
        self.context = context
        self.client = client
        self.builder = builder or AggregationPayloadBuilder()

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _window(
        time_range: TimeValue,
        last: TimeValue,
        from_time: TimeValue,
        to_time: TimeValue,
        default_seconds: int,
    ) -> TimeWindow:
        return resolve_time_range(
            time_range=time_range,
            last=last,
            from_time=from_time,
            to_time=to_time,
            default_seconds=default_seconds,
        )

    def _execute_messages(self, request: AggregationRequest, selection: FieldSelection) -> Any:
        variants = self.builder.build(request)
        raw = self.client.execute(variants[0].payload)
        return ResultNormalizer(selection).normalize(raw, MESSAGE_SEARCH)

    def _run_chain(self, request: AggregationRequest) -> Dict[str, Any]:
        variants = self.builder.build(request)
        result = FallbackExecutor().run(variants, self.client.execute, request.kind)
        payload = result.to_dict()
        payload["query"] = request.query_string
        payload["timerange"] = request.window.to_payload()
        if request.interval is not None:
            payload.update(request.interval.to_dict())
        if request.group_field:
            payload["field"] = request.group_field
        if request.stream_ids:
            payload["stream_ids"] = list(request.stream_ids)
        return payload

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    @structured_failures
    def search_messages(
        self,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        page: Optional[int] = 1,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        fields: Optional[str] = None,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Search messages, newest first, one page at a time."""
        page = positive_int("page", page, 1)
        page_size = positive_int("page_size", page_size, DEFAULT_PAGE_SIZE)
        window = self._window(time_range, last, from_time, to_time, DEFAULT_RANGE_SECONDS)
        query_string = build_query_string(query, filters, exact_match)
        selection = resolve_fields(fields, self.context.default_fields)

        request = AggregationRequest(
            kind=MESSAGE_SEARCH,
            window=window,
            query_string=query_string,
            filters=dict(filters or {}),
            stream_ids=tuple(normalise_stream_ids(stream_ids)),
            limit=page_size,
            offset=(page - 1) * page_size,
            sort_direction="DESC",
        )
        result = self._execute_messages(request, selection).to_dict()
        result.update(
            {
                "page": page,
                "page_size": page_size,
                "query": query_string,
                "timerange": window.to_payload(),
                "fields": selection.describe(),
            }
        )
        result["has_more"] = request.offset + result["returned"] < result["total_results"]
        logger.info(
            "Message search returned %d of %d result(s) for %s",
            result["returned"],
            result["total_results"],
            query_string,
        )
        return result

    def _lookup_timestamp(self, message_id: str) -> str:
        request = AggregationRequest(
            kind=MESSAGE_SEARCH,
            window=RelativeWindow(seconds=MESSAGE_LOOKUP_SECONDS),
            query_string=f"gl2_message_id:{message_id}",
            limit=1,
        )
        result = self._execute_messages(request, FieldSelection.all())
        if not result.messages:
            raise MessageNotFound(message_id)
        timestamp = result.messages[0].get("timestamp")
        if not timestamp:
            raise MissingRequiredParameter(
                "message_timestamp", f"Message '{message_id}' has no timestamp, pass message_timestamp instead"
            )
        return str(timestamp)

    @structured_failures
    def get_surrounding_messages(
        self,
        message_id: Optional[str] = None,
        message_timestamp: Optional[str] = None,
        surrounding_seconds: Optional[Union[int, float]] = DEFAULT_SURROUNDING_SECONDS,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        limit: Optional[int] = DEFAULT_SURROUNDING_LIMIT,
        fields: Optional[str] = None,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Return messages within ``surrounding_seconds`` of a target message, oldest first."""
        limit = positive_int("limit", limit, DEFAULT_SURROUNDING_LIMIT)
        if surrounding_seconds is None:
            surrounding_seconds = DEFAULT_SURROUNDING_SECONDS
        if isinstance(surrounding_seconds, bool) or not isinstance(surrounding_seconds, (int, float)):
            raise InvalidParameter("surrounding_seconds", "surrounding_seconds must be a number")
        if isinstance(surrounding_seconds, float) and not math.isfinite(surrounding_seconds):
            raise InvalidParameter("surrounding_seconds", "surrounding_seconds must be a finite number")
        if surrounding_seconds <= 0:
            raise InvalidParameter("surrounding_seconds", "surrounding_seconds must be greater than 0")
        # The window spans twice surrounding_seconds.
        if surrounding_seconds * 2 > MAX_RANGE_SECONDS:
            raise InvalidTimeRange(
                "surrounding window cannot exceed 1 year", surrounding_seconds, InvalidTimeRange.TOO_LONG
            )

        if message_id:
            target_timestamp = self._lookup_timestamp(message_id)
        elif message_timestamp:
            target_timestamp = message_timestamp
        else:
            raise MissingRequiredParameter(
                "message_id", "Provide either message_id or message_timestamp to locate the target message"
            )

        center = parse_absolute_time(target_timestamp)
        delta = timedelta(seconds=surrounding_seconds)
        try:
            start, end = center - delta, center + delta
        except OverflowError:
            raise InvalidTimeRange(
                f"window of {surrounding_seconds} seconds around {format_instant(center)} is outside the supported dates",
                target_timestamp,
                InvalidTimeRange.MALFORMED,
            ) from None
        window = resolve_time_range(from_time=start, to_time=end)
        query_string = build_query_string(query, filters, exact_match)
        selection = resolve_fields(fields, self.context.default_fields)

        request = AggregationRequest(
            kind=MESSAGE_SEARCH,
            window=window,
            query_string=query_string,
            filters=dict(filters or {}),
            stream_ids=tuple(normalise_stream_ids(stream_ids)),
            limit=limit,
            sort_direction="ASC",
        )
        result = self._execute_messages(request, selection).to_dict()
        result.update(
            {
                "target": {"message_id": message_id, "timestamp": format_instant(center)},
                "surrounding_seconds": surrounding_seconds,
                "query": query_string,
                "timerange": window.to_payload(),
                "fields": selection.describe(),
            }
        )
        return result

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------
    def _field_request(
        self,
        field: Optional[str],
        query: Optional[str],
        filters: Optional[Mapping[str, Any]],
        exact_match: bool,
        window: TimeWindow,
        limit: int,
        metrics: Optional[Union[str, Sequence[str]]],
        value_field: Optional[str],
        stream_ids: StreamIds,
    ) -> AggregationRequest:
        return AggregationRequest(
            kind=FIELD_AGGREGATION,
            window=window,
            query_string=build_query_string(query, filters, exact_match),
            filters=dict(filters or {}),
            stream_ids=tuple(normalise_stream_ids(stream_ids)),
            group_field=_require_field(field),
            limit=limit,
            metrics=tuple(_parse_metrics(metrics)),
            value_field=value_field.strip() if isinstance(value_field, str) and value_field.strip() else None,
        )

    @structured_failures
    def aggregate_field(
        self,
        field: Optional[str] = None,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        limit: Optional[int] = DEFAULT_AGGREGATION_LIMIT,
        metrics: Optional[Union[str, Sequence[str]]] = None,
        value_field: Optional[str] = None,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Group messages by the values of ``field`` with count/sum/avg/min/max metrics."""
        limit = positive_int("limit", limit, DEFAULT_AGGREGATION_LIMIT)
        window = self._window(time_range, last, from_time, to_time, DEFAULT_RANGE_SECONDS)
        request = self._field_request(field, query, filters, exact_match, window, limit, metrics, value_field, stream_ids)
        result = self._run_chain(request)
        result["metrics"] = list(request.metrics)
        if request.value_field:
            result["value_field"] = request.value_field
        return result

    @structured_failures
    def list_field_values(
        self,
        field: Optional[str] = None,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        limit: Optional[int] = DEFAULT_FIELD_VALUES_LIMIT,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Distinct values of ``field`` with message counts, highest count first."""
        limit = positive_int("limit", limit, DEFAULT_FIELD_VALUES_LIMIT)
        window = self._window(time_range, last, from_time, to_time, FIELD_VALUES_DEFAULT_SECONDS)
        request = self._field_request(field, query, filters, exact_match, window, limit, ["count"], None, stream_ids)
        result = self._run_chain(request)
        result["values"] = [{"value": bucket.get("key"), "count": bucket.get("count", 0)} for bucket in result.pop("buckets")]
        return result

    def _time_request(
        self,
        kind: str,
        field: Optional[str],
        interval: Optional[str],
        query: Optional[str],
        filters: Optional[Mapping[str, Any]],
        exact_match: bool,
        window: TimeWindow,
        limit: int,
        stream_ids: StreamIds,
    ) -> AggregationRequest:
        return AggregationRequest(
            kind=kind,
            window=window,
            query_string=build_query_string(query, filters, exact_match),
            filters=dict(filters or {}),
            stream_ids=tuple(normalise_stream_ids(stream_ids)),
            group_field=_require_field(field) if kind == FIELD_TIME_AGGREGATION else None,
            limit=limit,
            interval=resolve_interval(window, interval),
        )

    @structured_failures
    def histogram(
        self,
        interval: Optional[str] = AUTO_INTERVAL,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Message counts per time bucket."""
        window = self._window(time_range, last, from_time, to_time, DEFAULT_RANGE_SECONDS)
        request = self._time_request(
            HISTOGRAM, None, interval, query, filters, exact_match, window, DEFAULT_AGGREGATION_LIMIT, stream_ids
        )
        return self._run_chain(request)

    @structured_failures
    def field_time_aggregation(
        self,
        field: Optional[str] = None,
        interval: Optional[str] = AUTO_INTERVAL,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        limit: Optional[int] = DEFAULT_AGGREGATION_LIMIT,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Per-value time series: counts per time bucket for each value of ``field``."""
        limit = positive_int("limit", limit, DEFAULT_AGGREGATION_LIMIT)
        window = self._window(time_range, last, from_time, to_time, DEFAULT_RANGE_SECONDS)
        request = self._time_request(
            FIELD_TIME_AGGREGATION, field, interval, query, filters, exact_match, window, limit, stream_ids
        )
        return self._run_chain(request)

    @structured_failures
    def preview_aggregation(
        self,
        kind: str = HISTOGRAM,
        field: Optional[str] = None,
        interval: Optional[str] = AUTO_INTERVAL,
        query: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        exact_match: bool = True,
        time_range: TimeValue = None,
        last: TimeValue = None,
        from_time: TimeValue = None,
        to_time: TimeValue = None,
        limit: Optional[int] = DEFAULT_AGGREGATION_LIMIT,
        metrics: Optional[Union[str, Sequence[str]]] = None,
        value_field: Optional[str] = None,
        stream_ids: StreamIds = None,
    ) -> Dict[str, Any]:
        """Build the ordered payload variants for an aggregation without executing them."""
        limit = positive_int("limit", limit, DEFAULT_AGGREGATION_LIMIT)
        window = self._window(time_range, last, from_time, to_time, DEFAULT_RANGE_SECONDS)
        if kind == FIELD_AGGREGATION:
            request = self._field_request(
                field, query, filters, exact_match, window, limit, metrics, value_field, stream_ids
            )
        elif kind in (HISTOGRAM, FIELD_TIME_AGGREGATION):
            request = self._time_request(kind, field, interval, query, filters, exact_match, window, limit, stream_ids)
        else:
            raise InvalidParameter(
                "kind",
                f"Unknown aggregation kind '{kind}', expected one of: "
                f"{FIELD_AGGREGATION}, {HISTOGRAM}, {FIELD_TIME_AGGREGATION}",
            )

        variants = self.builder.build(request)
        result: Dict[str, Any] = {
            "kind": kind,
            "query": request.query_string,
            "timerange": window.to_payload(),
            "variants": [variant.to_dict() for variant in variants],
        }
        if request.interval is not None:
            result.update(request.interval.to_dict())
        return result


__all__ = [
    "SearchOperations",
    "structured_failures",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_SURROUNDING_SECONDS",
]
