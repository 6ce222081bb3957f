from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .payloads import FIELD_AGGREGATION, FIELD_TIME_AGGREGATION, HISTOGRAM, MESSAGE_SEARCH, QUERY_ID, SEARCH_TYPE_ID
from .query_builder import FieldSelection

logger = logging.getLogger(__name__)

POSITIONAL_METRICS = ("count", "sum", "avg", "min", "max")

_RESULT_TYPES = {
    MESSAGE_SEARCH: "messages",
    FIELD_AGGREGATION: "field_aggregation",
    HISTOGRAM: "time_histogram",
    FIELD_TIME_AGGREGATION: "field_time_aggregation",
}


@dataclass
class NormalizedResult:
    """Uniform, kind-tagged result handed back to tool callers."""

    kind: str
    buckets: List[Dict[str, Any]] = field(default_factory=list)
    series: Dict[Any, List[Dict[str, Any]]] = field(default_factory=dict)
    messages: List[Dict[str, Any]] = field(default_factory=list)
    total_results: int = 0
    variant: Optional[str] = None
    failed_variants: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": _RESULT_TYPES.get(self.kind, self.kind)}
        if self.kind == MESSAGE_SEARCH:
            result["total_results"] = self.total_results
            result["returned"] = len(self.messages)
            result["messages"] = self.messages
        elif self.kind == FIELD_TIME_AGGREGATION:
            result["total_buckets"] = len(self.buckets)
            result["series"] = self.series
        else:
            result["total_buckets"] = len(self.buckets)
            result["buckets"] = self.buckets
        if self.variant:
            result["variant"] = self.variant
        if self.failed_variants:
            result["failed_variants"] = self.failed_variants
        return result


def extract_search_type(raw: Any) -> Mapping[str, Any]:
    """Return ``results.q1.search_types.st1`` or an empty mapping."""
    node: Any = raw
    for key in ("results", QUERY_ID, "search_types", SEARCH_TYPE_ID):
        if not isinstance(node, Mapping):
            return {}
        node = node.get(key)
    return node if isinstance(node, Mapping) else {}


def _rows(raw: Any) -> List[Mapping[str, Any]]:
    rows = extract_search_type(raw).get("rows") or []
    return [row for row in rows if isinstance(row, Mapping)]


def _key_part(row: Mapping[str, Any], index: int) -> Any:
    key = row.get("key")
    if isinstance(key, (list, tuple)) and len(key) > index:
        return key[index]
    return None


def _first_value(row: Mapping[str, Any]) -> Any:
    values = row.get("values")
    if isinstance(values, (list, tuple)) and values and isinstance(values[0], Mapping):
        value = values[0].get("value")
        return 0 if value is None else value
    return 0


def _metric_name(entry: Mapping[str, Any], index: int) -> str:
    key = entry.get("key")
    if isinstance(key, (list, tuple)):
        key = key[-1] if key else None
    if key:
        return str(key)
    if index < len(POSITIONAL_METRICS):
        return POSITIONAL_METRICS[index]
    return f"metric_{index}"


class ResultNormalizer:
    """Maps raw views-search results into ``NormalizedResult`` shapes."""

    def __init__(self, selection: Optional[FieldSelection] = None) -> None:
        self.selection = selection or FieldSelection.all()

    def normalize(self, raw: Any, kind: str) -> NormalizedResult:
        if kind == MESSAGE_SEARCH:
            return self._messages(raw)
        if kind == FIELD_AGGREGATION:
            return self._field_buckets(raw)
        if kind == HISTOGRAM:
            return self._time_buckets(raw)
        if kind == FIELD_TIME_AGGREGATION:
            return self._field_time_series(raw)
        raise ValueError(f"Unknown result kind '{kind}'")

    def _messages(self, raw: Any) -> NormalizedResult:
        search_type = extract_search_type(raw)
        messages = []
        for entry in search_type.get("messages") or []:
            message = entry.get("message") if isinstance(entry, Mapping) else None
            messages.append(self.selection.project(message or {}))
        return NormalizedResult(
            kind=MESSAGE_SEARCH,
            messages=messages,
            total_results=search_type.get("total_results") or 0,
        )

    def _field_buckets(self, raw: Any) -> NormalizedResult:
        buckets = []
        for row in _rows(raw):
            bucket: Dict[str, Any] = {"key": _key_part(row, 0)}
            for index, entry in enumerate(row.get("values") or []):
                if isinstance(entry, Mapping):
                    bucket[_metric_name(entry, index)] = entry.get("value")
            buckets.append(bucket)
        return NormalizedResult(kind=FIELD_AGGREGATION, buckets=buckets)

    def _time_buckets(self, raw: Any) -> NormalizedResult:
        buckets = [{"timestamp": _key_part(row, 0), "count": _first_value(row)} for row in _rows(raw)]
        return NormalizedResult(kind=HISTOGRAM, buckets=buckets)

    def _field_time_series(self, raw: Any) -> NormalizedResult:
        buckets = [
            {"field_value": _key_part(row, 0), "timestamp": _key_part(row, 1), "count": _first_value(row)}
            for row in _rows(raw)
        ]
        series: Dict[Any, List[Dict[str, Any]]] = {}
        for bucket in buckets:
            series.setdefault(bucket["field_value"], []).append(
                {"timestamp": bucket["timestamp"], "count": bucket["count"]}
            )
        if not buckets:
            logger.debug("Field x time aggregation returned no rows")
        return NormalizedResult(kind=FIELD_TIME_AGGREGATION, buckets=buckets, series=series)


__all__ = ["NormalizedResult", "ResultNormalizer", "extract_search_type", "POSITIONAL_METRICS"]
