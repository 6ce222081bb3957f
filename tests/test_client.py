"""Tests for the Graylog REST client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from graylog_mcp.search.errors import BackendError
from graylog_mcp.shared.client import GraylogClient


def make_response(status=200, body=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
        response.text = "<html>oops</html>"
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestGraylogClient:
    def test_execute_posts_to_sync_search(self, connection, session):
        session.request.return_value = make_response(body={"results": {}})
        client = GraylogClient(connection, session=session, timeout=5)

        assert client.execute({"queries": []}) == {"results": {}}

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://graylog.example.com/api/views/search/sync")
        assert kwargs["json"] == {"queries": []}
        assert kwargs["auth"] == ("secret-token", "token")
        assert kwargs["headers"]["X-Requested-By"] == "graylog-mcp"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["timeout"] == 5

    def test_http_error(self, connection, session):
        session.request.return_value = make_response(status=400, body={"message": "Unable to parse query"})
        with pytest.raises(BackendError) as excinfo:
            GraylogClient(connection, session=session).execute({"queries": []})
        assert excinfo.value.status == 400
        assert "Unable to parse query" in excinfo.value.message

    def test_errors_in_successful_response(self, connection, session):
        session.request.return_value = make_response(body={"errors": [{"description": "bad pivot"}], "results": {}})
        with pytest.raises(BackendError) as excinfo:
            GraylogClient(connection, session=session).execute({"queries": []})
        assert excinfo.value.status == 200

    def test_connection_failure(self, connection, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(BackendError) as excinfo:
            GraylogClient(connection, session=session).execute({"queries": []})
        assert excinfo.value.status is None
        assert "refused" in excinfo.value.message

    def test_invalid_json(self, connection, session):
        session.request.return_value = make_response(json_error=True)
        with pytest.raises(BackendError):
            GraylogClient(connection, session=session).fetch_streams()

    def test_event_definitions_params(self, connection, session):
        session.request.return_value = make_response(body={"event_definitions": []})
        GraylogClient(connection, session=session).fetch_event_definitions(page=2, per_page=10, query="disk")
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://graylog.example.com/api/events/definitions")
        assert kwargs["params"] == {"page": 2, "per_page": 10, "query": "disk"}
        assert kwargs["json"] is None
        assert "Content-Type" not in kwargs["headers"]
