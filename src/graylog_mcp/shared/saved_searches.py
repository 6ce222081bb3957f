from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from rapidfuzz import process

from graylog_mcp.search.errors import SavedSearchNotFound
from graylog_mcp.search.timerange import format_instant

logger = logging.getLogger(__name__)

SAVED_SEARCHES_FILENAME = "saved-searches.json"

# Parameters replayed by run_saved_search, in the order they are stored.
SAVED_PARAMS = (
    "query",
    "filters",
    "time_range",
    "from_time",
    "to_time",
    "fields",
    "stream_ids",
    "exact_match",
    "page_size",
)


class SavedSearchStore:
    """Saved search parameters persisted as ``{"searches": {name: {...}}}``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    @classmethod
    def beside(cls, config_path: Path) -> SavedSearchStore:
        return cls(Path(config_path).parent / SAVED_SEARCHES_FILENAME)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read saved searches from %s: %s", self.path, exc)
            return {}
        searches = data.get("searches") if isinstance(data, dict) else None
        return searches if isinstance(searches, dict) else {}

    def _write(self, searches: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"searches": searches}, indent=2), encoding="utf-8")

    def save(self, name: str, params: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        name = name.strip()
        if not name:
            raise ValueError("Saved search name cannot be empty")

        timestamp = format_instant(now or datetime.now(timezone.utc))
        with self._lock:
            searches = self._load()
            existing = searches.get(name) or {}
            entry: Dict[str, Any] = {"name": name}
            for key in SAVED_PARAMS:
                value = params.get(key)
                if value is not None and value != "":
                    entry[key] = value
            entry["created_at"] = existing.get("created_at", timestamp)
            entry["updated_at"] = timestamp
            searches[name] = entry
            self._write(searches)

        logger.info("Saved search '%s' to %s", name, self.path)
        return entry

    def get(self, name: str) -> Dict[str, Any]:
        searches = self._load()
        if name in searches:
            return searches[name]
        suggestion = None
        if searches:
            match = process.extractOne(name, list(searches), score_cutoff=60)
            suggestion = match[0] if match else None
        raise SavedSearchNotFound(name, suggestion)

    def list(self) -> List[Dict[str, Any]]:
        return list(self._load().values())

    def delete(self, name: str) -> bool:
        with self._lock:
            searches = self._load()
            if name not in searches:
                return False
            del searches[name]
            self._write(searches)
        logger.info("Deleted saved search '%s'", name)
        return True


__all__ = ["SavedSearchStore", "SAVED_PARAMS"]
