from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

WILDCARD = "*"

# Presence of any of these means the caller is writing raw query syntax.
_SPECIAL_CHARS_PATTERN = re.compile(r"[*?:()]")

DefaultFields = Union[str, Sequence[str]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _quote(value: Any) -> str:
    """Quote a filter value as a phrase for the Lucene-style query language."""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_query_string(
    query: Optional[str] = None,
    filters: Optional[Mapping[str, Any]] = None,
    exact_match: bool = True,
) -> str:
    """
    Combine free text and field filters into one query string.

    With ``exact_match`` the free text is wrapped in quotes unless it is already
    quoted or uses query syntax (``* ? : ( )``). Each filter adds an
    ``AND field:value`` clause in mapping order; ``None`` values are skipped and
    only numbers stay unquoted.
    """
    text = query.strip() if isinstance(query, str) else query
    if not text or text == WILDCARD:
        compiled = WILDCARD
    elif not isinstance(text, str):
        compiled = str(text)
    elif exact_match and not text.startswith('"') and not _SPECIAL_CHARS_PATTERN.search(text):
        compiled = f'"{text}"'
    else:
        compiled = text

    if filters and isinstance(filters, Mapping):
        for field_name, value in filters.items():
            if value is None:
                continue
            if _is_number(value):
                compiled += f" AND {field_name}:{value}"
            else:
                compiled += f" AND {field_name}:{_quote(value)}"
    elif filters:
        logger.warning("Ignoring filters of type %s, expected a mapping", type(filters).__name__)

    return compiled


def normalise_stream_ids(stream_ids: Union[None, str, Iterable[str]]) -> List[str]:
    if stream_ids is None:
        return []
    if isinstance(stream_ids, str):
        candidates: Iterable[str] = stream_ids.split(",")
    else:
        candidates = stream_ids
    ids: List[str] = []
    for candidate in candidates:
        cleaned = str(candidate).strip()
        if cleaned and cleaned not in ids:
            ids.append(cleaned)
    return ids


def build_stream_filter(stream_ids: Union[None, str, Iterable[str]]) -> Optional[Dict[str, Any]]:
    """Return the top-level stream inclusion filter, or ``None`` when unscoped."""
    ids = normalise_stream_ids(stream_ids)
    if not ids:
        return None
    return {
        "type": "or",
        "filters": [{"type": "stream", "id": stream_id} for stream_id in ids],
    }


@dataclass(frozen=True)
class FieldSelection:
    """Projection applied to returned messages; ``fields=None`` means all fields."""

    fields: Optional[Tuple[str, ...]] = None

    @classmethod
    def all(cls) -> FieldSelection:
        return cls(fields=None)

    @property
    def is_all(self) -> bool:
        return self.fields is None

    def project(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        if self.fields is None:
            return dict(record)
        return {name: record[name] for name in self.fields if name in record}

    def describe(self) -> Union[str, List[str]]:
        return WILDCARD if self.fields is None else list(self.fields)


def _split_fields(raw: str) -> Tuple[str, ...]:
    names: List[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return tuple(names)


def resolve_fields(requested: Optional[str], default_fields: DefaultFields) -> FieldSelection:
    """Resolve a ``fields`` argument against the connection's default-field policy."""
    if isinstance(requested, str):
        cleaned = requested.strip()
        if cleaned == WILDCARD:
            return FieldSelection.all()
        if cleaned:
            names = _split_fields(cleaned)
            if names:
                return FieldSelection(fields=names)

    if isinstance(default_fields, str):
        if default_fields.strip() == WILDCARD:
            return FieldSelection.all()
        return FieldSelection(fields=_split_fields(default_fields))

    names: List[str] = []
    for name in default_fields or ():
        if name not in names:
            names.append(name)
    return FieldSelection(fields=tuple(names))


__all__ = [
    "WILDCARD",
    "FieldSelection",
    "build_query_string",
    "build_stream_filter",
    "normalise_stream_ids",
    "resolve_fields",
]
