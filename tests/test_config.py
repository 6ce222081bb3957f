"""Tests for connection configuration loading."""

from __future__ import annotations

import json

import pytest

from graylog_mcp.search.errors import UnknownConnection
from graylog_mcp.shared.config import DEFAULT_FIELDS, ConnectionRegistry, GraylogConnection, resolve_config_path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GRAYLOG_URL", "GRAYLOG_API_TOKEN", "GRAYLOG_CONNECTION_NAME", "GRAYLOG_DEFAULT_FIELDS", "GRAYLOG_MCP_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "connections": {
                    "production": {"baseUrl": "https://prod.example.com/", "apiToken": "p-token"},
                    "staging": {
                        "baseUrl": "https://staging.example.com",
                        "apiToken": "s-token",
                        "defaultFields": "*",
                    },
                    "broken": {"baseUrl": "https://broken.example.com"},
                },
                "defaultFields": ["timestamp", "message"],
            }
        ),
        encoding="utf-8",
    )
    return path


class TestConnectionRegistry:
    def test_load_skips_incomplete_connections(self, config_file):
        registry = ConnectionRegistry.load(config_file)
        assert registry.names() == ["production", "staging"]
        assert registry.get("production").base_url == "https://prod.example.com"

    def test_summaries_hide_tokens(self, config_file):
        summaries = ConnectionRegistry.load(config_file).summaries()
        assert summaries[0] == {"name": "production", "base_url": "https://prod.example.com"}
        assert "p-token" not in repr(ConnectionRegistry.load(config_file).get("production"))

    def test_field_policy_precedence(self, config_file):
        registry = ConnectionRegistry.load(config_file)
        assert registry.context_for("staging").default_fields == "*"
        assert registry.context_for("production").default_fields == ["timestamp", "message"]

    def test_builtin_default_fields(self, tmp_path):
        registry = ConnectionRegistry({"a": GraylogConnection("a", "https://a", "t")}, config_path=tmp_path / "c.json")
        assert registry.context_for("a").default_fields == DEFAULT_FIELDS

    def test_unknown_connection_suggests_closest(self, config_file):
        registry = ConnectionRegistry.load(config_file)
        with pytest.raises(UnknownConnection) as excinfo:
            registry.get("prodution")
        assert excinfo.value.suggestion == "production"
        assert excinfo.value.to_dict()["available"] == ["production", "staging"]

    def test_missing_file(self, tmp_path):
        registry = ConnectionRegistry.load(tmp_path / "absent.json")
        assert registry.names() == []

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        assert ConnectionRegistry.load(path).names() == []

    def test_environment_connection(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRAYLOG_URL", "https://env.example.com/")
        monkeypatch.setenv("GRAYLOG_API_TOKEN", "env-token")
        monkeypatch.setenv("GRAYLOG_DEFAULT_FIELDS", "source, message")
        registry = ConnectionRegistry.load(tmp_path / "absent.json")
        connection = registry.get("default")
        assert connection.base_url == "https://env.example.com"
        assert connection.default_fields == ["source", "message"]

    def test_file_wins_over_environment_with_same_name(self, config_file, monkeypatch):
        monkeypatch.setenv("GRAYLOG_URL", "https://env.example.com")
        monkeypatch.setenv("GRAYLOG_API_TOKEN", "env-token")
        monkeypatch.setenv("GRAYLOG_CONNECTION_NAME", "production")
        registry = ConnectionRegistry.load(config_file)
        assert registry.get("production").base_url == "https://prod.example.com"


def test_config_path_override(tmp_path, monkeypatch):
    monkeypatch.setenv("GRAYLOG_MCP_CONFIG", str(tmp_path / "custom.json"))
    assert resolve_config_path() == tmp_path / "custom.json"
