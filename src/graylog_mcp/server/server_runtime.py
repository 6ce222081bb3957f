from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from graylog_mcp.search.errors import ConnectionNotSelected
from graylog_mcp.search.events import EventOperations
from graylog_mcp.search.operations import SearchOperations
from graylog_mcp.shared.client import GraylogClient
from graylog_mcp.shared.config import ConnectionRegistry, GraylogConnection, SearchContext
from graylog_mcp.shared.saved_searches import SavedSearchStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[GraylogConnection], GraylogClient]


class ServerRuntime:
    """Owns the connection registry, the active-connection selector and the saved-search store."""

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        saved_searches: Optional[SavedSearchStore] = None,
        client_factory: Optional[ClientFactory] = None,
        active_connection: Optional[str] = None,
    ) -> None:
        self.registry = registry or ConnectionRegistry.load()
        self.saved_searches = saved_searches or SavedSearchStore.beside(self.registry.config_path)
        self._client_factory: ClientFactory = client_factory or GraylogClient
        self._clients: Dict[str, GraylogClient] = {}
        self._active_connection: Optional[str] = None

        if active_connection:
            self.use_connection(active_connection)
        elif len(self.registry.names()) == 1:
            # A single configured connection needs no explicit selection.
            self._active_connection = self.registry.names()[0]

    # ------------------------------------------------------------------
    # Properties exposing runtime state
    # ------------------------------------------------------------------
    @property
    def active_connection(self) -> Optional[str]:
        return self._active_connection

    @property
    def config_path(self) -> Path:
        return self.registry.config_path

    # ------------------------------------------------------------------
    # Connection selection
    # ------------------------------------------------------------------
    def use_connection(self, name: str) -> GraylogConnection:
        connection = self.registry.get(name)
        self._active_connection = connection.name
        logger.info("Active Graylog connection set to '%s' (%s)", connection.name, connection.base_url)
        return connection

    def context(self) -> SearchContext:
        """Snapshot the active connection into a per-request context."""
        if not self._active_connection:
            raise ConnectionNotSelected()
        return self.registry.context_for(self._active_connection)

    def client_for(self, connection: GraylogConnection) -> GraylogClient:
        client = self._clients.get(connection.name)
        if client is None:
            client = self._client_factory(connection)
            self._clients[connection.name] = client
        return client

    def operations(self) -> SearchOperations:
        context = self.context()
        return SearchOperations(context, self.client_for(context.connection))

    def events(self) -> EventOperations:
        context = self.context()
        return EventOperations(self.client_for(context.connection))


__all__ = ["ServerRuntime"]
