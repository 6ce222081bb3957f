"""Connection configuration and the per-request search context."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from rapidfuzz import process

from graylog_mcp.search.errors import UnknownConnection

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GRAYLOG_MCP_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".graylog-mcp" / "config.json"
DEFAULT_CONNECTION_NAME = "default"

DEFAULT_FIELDS: List[str] = [
    "timestamp",
    "gl2_message_id",
    "source",
    "env",
    "level",
    "message",
    "logger_name",
    "thread_name",
    "PODNAME",
]

DefaultFieldsPolicy = Union[str, Sequence[str]]

_SUGGESTION_CUTOFF = 60


def _normalise_default_fields(value: Any) -> Optional[DefaultFieldsPolicy]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "*":
            return "*"
        return [name.strip() for name in value.split(",") if name.strip()] or None
    if isinstance(value, (list, tuple)):
        return [str(name).strip() for name in value if str(name).strip()] or None
    logger.warning("Ignoring defaultFields of unsupported type %s", type(value).__name__)
    return None


@dataclass(frozen=True)
class GraylogConnection:
    """One configured Graylog instance."""

    name: str
    base_url: str
    api_token: str = field(repr=False)
    default_fields: Optional[DefaultFieldsPolicy] = None

    @classmethod
    def from_mapping(cls, name: str, data: Dict[str, Any]) -> GraylogConnection:
        base_url = str(data.get("baseUrl") or data.get("base_url") or "").strip().rstrip("/")
        api_token = str(data.get("apiToken") or data.get("api_token") or "").strip()
        if not base_url or not api_token:
            raise ValueError(f"Connection '{name}' needs both baseUrl and apiToken")
        return cls(
            name=name,
            base_url=base_url,
            api_token=api_token,
            default_fields=_normalise_default_fields(data.get("defaultFields")),
        )

    @classmethod
    def from_env(cls) -> Optional[GraylogConnection]:
        """Build a connection from GRAYLOG_URL / GRAYLOG_API_TOKEN, if both are set."""
        base_url = os.getenv("GRAYLOG_URL", "").strip().rstrip("/")
        api_token = os.getenv("GRAYLOG_API_TOKEN", "").strip()
        if not base_url or not api_token:
            return None
        name = os.getenv("GRAYLOG_CONNECTION_NAME", DEFAULT_CONNECTION_NAME).strip() or DEFAULT_CONNECTION_NAME
        return cls(
            name=name,
            base_url=base_url,
            api_token=api_token,
            default_fields=_normalise_default_fields(os.getenv("GRAYLOG_DEFAULT_FIELDS")),
        )

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "base_url": self.base_url}


@dataclass(frozen=True)
class SearchContext:
    """Explicit per-request context: which backend, and how to project messages."""

    connection: GraylogConnection
    default_fields: DefaultFieldsPolicy = field(default_factory=lambda: list(DEFAULT_FIELDS))


class ConnectionRegistry:
    """Named connections loaded from the JSON config file and the environment."""

    def __init__(
        self,
        connections: Optional[Dict[str, GraylogConnection]] = None,
        default_fields: Optional[DefaultFieldsPolicy] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        self._connections: Dict[str, GraylogConnection] = dict(connections or {})
        self.default_fields = default_fields
        self.config_path = config_path or resolve_config_path()

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None, include_env: bool = True) -> ConnectionRegistry:
        path = Path(config_path) if config_path else resolve_config_path()
        connections: Dict[str, GraylogConnection] = {}
        default_fields: Optional[DefaultFieldsPolicy] = None

        data = _read_config(path)
        for name, entry in (data.get("connections") or {}).items():
            if not isinstance(entry, dict):
                logger.warning("Skipping connection '%s': expected an object", name)
                continue
            try:
                connections[name] = GraylogConnection.from_mapping(name, entry)
            except ValueError as exc:
                logger.warning("Skipping connection '%s': %s", name, exc)
        default_fields = _normalise_default_fields(data.get("defaultFields"))

        if include_env:
            env_connection = GraylogConnection.from_env()
            if env_connection and env_connection.name not in connections:
                connections[env_connection.name] = env_connection
                logger.info("Added connection '%s' from environment", env_connection.name)

        logger.info("Loaded %d Graylog connection(s) from %s", len(connections), path)
        return cls(connections=connections, default_fields=default_fields, config_path=path)

    def names(self) -> List[str]:
        return sorted(self._connections)

    def summaries(self) -> List[Dict[str, Any]]:
        return [self._connections[name].describe() for name in self.names()]

    def get(self, name: str) -> GraylogConnection:
        connection = self._connections.get(name)
        if connection is not None:
            return connection
        raise UnknownConnection(name, self.names(), self.suggest(name))

    def suggest(self, name: str) -> Optional[str]:
        if not self._connections or not name:
            return None
        match = process.extractOne(name, self.names(), score_cutoff=_SUGGESTION_CUTOFF)
        return match[0] if match else None

    def fields_policy(self, connection: GraylogConnection) -> DefaultFieldsPolicy:
        if connection.default_fields is not None:
            return connection.default_fields
        if self.default_fields is not None:
            return self.default_fields
        return list(DEFAULT_FIELDS)

    def context_for(self, name: str) -> SearchContext:
        connection = self.get(name)
        return SearchContext(connection=connection, default_fields=self.fields_policy(connection))


def resolve_config_path() -> Path:
    override = os.getenv(CONFIG_ENV_VAR, "").strip()
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def _read_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.info("No config file found at %s", path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read config file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a JSON object", path)
        return {}
    return data


__all__ = [
    "DEFAULT_FIELDS",
    "GraylogConnection",
    "SearchContext",
    "ConnectionRegistry",
    "resolve_config_path",
]
