"""
Payload construction for the views search API.

The backend accepts several structurally different pivot payloads for the
same time-bucketed question, and some of them silently return zero buckets.
Histogram and field x time requests therefore build an ordered chain of
variants, most reliable first; the order is part of the behaviour.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidParameter, MissingRequiredParameter, MissingValueField
from .intervals import Interval
from .query_builder import build_stream_filter
from .timerange import TimeWindow

logger = logging.getLogger(__name__)

MESSAGE_SEARCH = "message-search"
FIELD_AGGREGATION = "field-aggregation"
HISTOGRAM = "histogram"
FIELD_TIME_AGGREGATION = "field-time-aggregation"

REQUEST_KINDS = (MESSAGE_SEARCH, FIELD_AGGREGATION, HISTOGRAM, FIELD_TIME_AGGREGATION)

QUERY_ID = "q1"
SEARCH_TYPE_ID = "st1"

SUPPORTED_METRICS = ("count", "sum", "avg", "min", "max")
VALUE_METRICS = ("sum", "avg", "min", "max")


@dataclass(frozen=True)
class AggregationRequest:
    """Everything needed to build the payload(s) for one request."""

    kind: str
    window: TimeWindow
    query_string: str = "*"
    filters: Mapping[str, Any] = field(default_factory=dict)
    stream_ids: Tuple[str, ...] = ()
    group_field: Optional[str] = None
    limit: int = 10
    offset: int = 0
    metrics: Tuple[str, ...] = ("count",)
    value_field: Optional[str] = None
    interval: Optional[Interval] = None
    sort_direction: Optional[str] = None


@dataclass(frozen=True)
class PayloadVariant:
    label: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"variant": self.label, "payload": self.payload}


VariantBuilder = Callable[[AggregationRequest], Dict[str, Any]]


def _wrap(request: AggregationRequest, search_type: Dict[str, Any]) -> Dict[str, Any]:
    query: Dict[str, Any] = {
        "id": QUERY_ID,
        "query": {"type": "elasticsearch", "query_string": request.query_string},
        "timerange": request.window.to_payload(),
        "search_types": [search_type],
    }
    stream_filter = build_stream_filter(request.stream_ids)
    if stream_filter:
        query["filter"] = stream_filter
    return {"queries": [query]}


def _require_interval(request: AggregationRequest) -> Interval:
    if request.interval is None:
        raise MissingRequiredParameter("interval")
    return request.interval


def _time_group(interval: Any) -> Dict[str, Any]:
    return {"type": "time", "field": "timestamp", "interval": interval}


def _values_group(request: AggregationRequest) -> Dict[str, Any]:
    return {"type": "values", "field": request.group_field, "limit": request.limit}


# ---------------------------------------------------------------------------
# Single-shape payloads
# ---------------------------------------------------------------------------
def build_message_search(request: AggregationRequest) -> Dict[str, Any]:
    search_type: Dict[str, Any] = {
        "id": SEARCH_TYPE_ID,
        "type": "messages",
        "limit": request.limit,
        "offset": request.offset,
    }
    if request.sort_direction:
        search_type["sort"] = [{"field": "timestamp", "order": request.sort_direction}]
    return _wrap(request, search_type)


def build_metric_series(metrics: Sequence[str], value_field: Optional[str]) -> List[Dict[str, Any]]:
    """Translate metric names into pivot series; ``count`` needs no field."""
    missing = [metric for metric in metrics if metric in VALUE_METRICS and not value_field]
    if missing:
        raise MissingValueField(missing)

    series: List[Dict[str, Any]] = []
    for metric in metrics:
        if metric == "count":
            series.append({"type": "count", "id": "count"})
        elif metric in VALUE_METRICS:
            series.append({"type": metric, "id": metric, "field": value_field})
        else:
            raise InvalidParameter(
                "metrics",
                f"Unsupported metric '{metric}', expected one of: {', '.join(SUPPORTED_METRICS)}",
            )
    return series


def build_field_aggregation(request: AggregationRequest) -> Dict[str, Any]:
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_values_group(request)],
            "series": build_metric_series(request.metrics, request.value_field),
            "rollup": False,
            "sort": [{"type": "series", "field": "count", "direction": "DESC"}],
        },
    )


# ---------------------------------------------------------------------------
# Histogram variants
# ---------------------------------------------------------------------------
def build_histogram_symbolic_pivot(request: AggregationRequest) -> Dict[str, Any]:
    """Same time group and series as the working field x time pivot, minus the field."""
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_time_group(interval.symbol)],
            "series": [{"type": "count"}],
            "rollup": False,
        },
    )


def build_histogram_chart(request: AggregationRequest) -> Dict[str, Any]:
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "chart",
            "time_range": request.window.to_payload(),
            "streams": [],
            "name": "Timeline",
            "series": [{"type": "count", "id": "count"}],
            "group_by": [],
            "interval": interval.symbol,
        },
    )


def build_histogram_simple_pivot(request: AggregationRequest) -> Dict[str, Any]:
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_time_group(interval.symbol)],
            "series": [{"type": "count"}],
            "rollup": False,
        },
    )


def build_histogram_duration_pivot(request: AggregationRequest) -> Dict[str, Any]:
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_time_group(interval.duration_object())],
            "series": [{"type": "count", "id": "count"}],
            "rollup": False,
            "sort": [{"type": "pivot", "field": "timestamp", "direction": "ASC"}],
        },
    )


# ---------------------------------------------------------------------------
# Field x time variants
# ---------------------------------------------------------------------------
def build_field_time_simple_pivot(request: AggregationRequest) -> Dict[str, Any]:
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_values_group(request), _time_group(interval.symbol)],
            "series": [{"type": "count"}],
            "rollup": False,
        },
    )


def build_field_time_duration_pivot(request: AggregationRequest) -> Dict[str, Any]:
    interval = _require_interval(request)
    return _wrap(
        request,
        {
            "id": SEARCH_TYPE_ID,
            "type": "pivot",
            "row_groups": [_values_group(request), _time_group(interval.duration_object())],
            "series": [{"type": "count", "id": "count"}],
            "rollup": False,
            "sort": [{"type": "series", "field": "count", "direction": "DESC"}],
        },
    )


# Ordered by observed reliability against the backend, most reliable first.
VARIANT_CHAINS: Dict[str, Tuple[Tuple[str, VariantBuilder], ...]] = {
    MESSAGE_SEARCH: (("messages", build_message_search),),
    FIELD_AGGREGATION: (("values-pivot", build_field_aggregation),),
    HISTOGRAM: (
        ("symbolic-interval-pivot", build_histogram_symbolic_pivot),
        ("chart", build_histogram_chart),
        ("simple-pivot", build_histogram_simple_pivot),
        ("resolved-duration-pivot", build_histogram_duration_pivot),
    ),
    FIELD_TIME_AGGREGATION: (
        ("simple-pivot", build_field_time_simple_pivot),
        ("resolved-duration-pivot", build_field_time_duration_pivot),
    ),
}


class AggregationPayloadBuilder:
    """Builds the ordered variant chain for an ``AggregationRequest``."""

    def __init__(self, chains: Optional[Mapping[str, Sequence[Tuple[str, VariantBuilder]]]] = None) -> None:
        self._chains = dict(chains if chains is not None else VARIANT_CHAINS)

    def labels(self, kind: str) -> List[str]:
        return [label for label, _ in self._chain(kind)]

    def build(self, request: AggregationRequest) -> List[PayloadVariant]:
        self._validate(request)
        variants = [PayloadVariant(label=label, payload=builder(request)) for label, builder in self._chain(request.kind)]
        logger.debug(
            "Built %d payload variant(s) for %s: %s",
            len(variants),
            request.kind,
            ", ".join(variant.label for variant in variants),
        )
        return variants

    def _chain(self, kind: str) -> Sequence[Tuple[str, VariantBuilder]]:
        try:
            return self._chains[kind]
        except KeyError:
            raise InvalidParameter(
                "kind", f"Unknown request kind '{kind}', expected one of: {', '.join(REQUEST_KINDS)}"
            ) from None

    @staticmethod
    def _validate(request: AggregationRequest) -> None:
        if request.kind in (FIELD_AGGREGATION, FIELD_TIME_AGGREGATION):
            if not request.group_field or not str(request.group_field).strip():
                raise MissingRequiredParameter("field", "A field to group by is required")
        if request.kind in (HISTOGRAM, FIELD_TIME_AGGREGATION) and request.interval is None:
            raise MissingRequiredParameter("interval")
        if request.limit < 1:
            raise InvalidParameter("limit", "limit must be a positive integer")
        if request.offset < 0:
            raise InvalidParameter("offset", "offset cannot be negative")


__all__ = [
    "MESSAGE_SEARCH",
    "FIELD_AGGREGATION",
    "HISTOGRAM",
    "FIELD_TIME_AGGREGATION",
    "REQUEST_KINDS",
    "SUPPORTED_METRICS",
    "AggregationRequest",
    "PayloadVariant",
    "AggregationPayloadBuilder",
    "VARIANT_CHAINS",
    "build_metric_series",
]
