from __future__ import annotations

import pytest

from fakes import FakeClient
from graylog_mcp.shared.config import DEFAULT_FIELDS, GraylogConnection, SearchContext


@pytest.fixture
def connection() -> GraylogConnection:
    return GraylogConnection(name="prod", base_url="https://graylog.example.com", api_token="secret-token")


@pytest.fixture
def context(connection: GraylogConnection) -> SearchContext:
    return SearchContext(connection=connection, default_fields=list(DEFAULT_FIELDS))


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
