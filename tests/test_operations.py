"""End-to-end tests of the caller-facing operations against a fake backend."""

from __future__ import annotations

import pytest

from fakes import FakeClient, backend_error, message_result, search_result
from graylog_mcp.search.operations import SearchOperations
from graylog_mcp.shared.config import DEFAULT_FIELDS, SearchContext


def search_type(payload):
    return payload["queries"][0]["search_types"][0]


def make_ops(context, *responses):
    client = FakeClient(list(responses))
    return SearchOperations(context, client), client


class TestSearchMessages:
    def test_defaults(self, context):
        ops, client = make_ops(
            context,
            message_result([{"timestamp": "t1", "message": "boom", "source": "api", "secret": "x"}], total=1),
        )
        result = ops.search_messages(query="boom", filters={"env": "prod"})

        payload = client.payloads[0]
        assert payload["queries"][0]["query"]["query_string"] == '"boom" AND env:"prod"'
        assert payload["queries"][0]["timerange"] == {"type": "relative", "range": 900}
        assert search_type(payload)["limit"] == 50
        assert search_type(payload)["offset"] == 0
        assert search_type(payload)["sort"] == [{"field": "timestamp", "order": "DESC"}]

        assert result["messages"] == [{"timestamp": "t1", "source": "api", "message": "boom"}]
        assert result["fields"] == DEFAULT_FIELDS
        assert result["total_results"] == 1
        assert result["has_more"] is False

    def test_paging(self, context):
        ops, client = make_ops(context, message_result([{"message": "m"}] * 10, total=35))
        result = ops.search_messages(page=3, page_size=10, fields="*")
        assert search_type(client.payloads[0])["offset"] == 20
        assert result["has_more"] is True
        assert result["fields"] == "*"

    def test_stream_scoping(self, context):
        ops, client = make_ops(context)
        ops.search_messages(stream_ids="abc,def")
        assert client.payloads[0]["queries"][0]["filter"]["filters"] == [
            {"type": "stream", "id": "abc"},
            {"type": "stream", "id": "def"},
        ]

    def test_wildcard_default_policy(self, connection):
        ops, _ = make_ops(
            SearchContext(connection=connection, default_fields="*"),
            message_result([{"a": 1, "b": 2}]),
        )
        assert ops.search_messages()["messages"] == [{"a": 1, "b": 2}]

    def test_invalid_time_range_never_reaches_backend(self, context):
        ops, client = make_ops(context)
        result = ops.search_messages(time_range="-5")
        assert result["error_type"] == "InvalidTimeRange"
        assert result["rule"] == "negative"
        assert client.payloads == []

    @pytest.mark.parametrize("page, page_size", [(0, 10), (1, -1), ("x", 10)])
    def test_invalid_paging(self, context, page, page_size):
        ops, client = make_ops(context)
        result = ops.search_messages(page=page, page_size=page_size)
        assert result["error_type"] == "InvalidParameter"
        assert client.payloads == []

    def test_backend_error_is_structured(self, context):
        ops, _ = make_ops(context, backend_error(401, "unauthorized"))
        result = ops.search_messages()
        assert result == {"error": "Backend returned HTTP 401: unauthorized", "error_type": "BackendError", "status": 401}


class TestSurroundingMessages:
    def test_lookup_by_message_id(self, context):
        ops, client = make_ops(
            context,
            message_result([{"gl2_message_id": "abc", "timestamp": "2024-01-01T00:00:05.000Z"}]),
            message_result([{"message": "before"}, {"message": "target"}]),
        )
        result = ops.get_surrounding_messages(message_id="abc")

        lookup, context_search = client.payloads
        assert lookup["queries"][0]["query"]["query_string"] == "gl2_message_id:abc"
        assert lookup["queries"][0]["timerange"] == {"type": "relative", "range": 86400}
        assert context_search["queries"][0]["timerange"] == {
            "type": "absolute",
            "from": "2024-01-01T00:00:00.000Z",
            "to": "2024-01-01T00:00:10.000Z",
        }
        assert search_type(context_search)["sort"] == [{"field": "timestamp", "order": "ASC"}]
        assert result["target"] == {"message_id": "abc", "timestamp": "2024-01-01T00:00:05.000Z"}
        assert [message["message"] for message in result["messages"]] == ["before", "target"]

    def test_explicit_timestamp_skips_lookup(self, context):
        ops, client = make_ops(context)
        ops.get_surrounding_messages(message_timestamp="2024-01-01T00:01:00Z", surrounding_seconds=30, limit=5)
        assert len(client.payloads) == 1
        assert client.payloads[0]["queries"][0]["timerange"]["from"] == "2024-01-01T00:00:30.000Z"
        assert search_type(client.payloads[0])["limit"] == 5

    def test_unknown_message(self, context):
        ops, client = make_ops(context, message_result([]))
        result = ops.get_surrounding_messages(message_id="missing")
        assert result["error_type"] == "MessageNotFound"
        assert len(client.payloads) == 1

    def test_requires_id_or_timestamp(self, context):
        ops, client = make_ops(context)
        result = ops.get_surrounding_messages()
        assert result["error_type"] == "MissingRequiredParameter"
        assert client.payloads == []

    def test_window_longer_than_a_year(self, context):
        ops, client = make_ops(context)
        result = ops.get_surrounding_messages(message_timestamp="2024-01-01T00:00:00Z", surrounding_seconds=1e15)
        assert result["error_type"] == "InvalidTimeRange"
        assert result["rule"] == "too_long"
        assert client.payloads == []

    def test_window_past_the_last_supported_date(self, context):
        ops, client = make_ops(context)
        result = ops.get_surrounding_messages(message_timestamp="9999-12-31T23:59:59Z", surrounding_seconds=60)
        assert result["error_type"] == "InvalidTimeRange"
        assert result["rule"] == "malformed"
        assert client.payloads == []

    @pytest.mark.parametrize("seconds", [float("nan"), float("inf")], ids=["nan", "inf"])
    def test_non_finite_window(self, context, seconds):
        ops, client = make_ops(context)
        result = ops.get_surrounding_messages(message_timestamp="2024-01-01T00:00:00Z", surrounding_seconds=seconds)
        assert result["error_type"] == "InvalidParameter"
        assert client.payloads == []


class TestAggregations:
    def test_field_time_end_to_end(self, context):
        ops, client = make_ops(
            context,
            search_result(
                rows=[
                    {"key": ["prod", "t1"], "values": [{"value": 5}]},
                    {"key": ["prod", "t2"], "values": [{"value": 7}]},
                ]
            ),
        )
        result = ops.field_time_aggregation(field="env", interval="auto", time_range="1h")

        assert result["series"] == {"prod": [{"timestamp": "t1", "count": 5}, {"timestamp": "t2", "count": 7}]}
        assert result["variant"] == "simple-pivot"
        assert result["interval"] == "1m"
        assert result["interval_auto"] is True
        assert result["field"] == "env"
        assert len(client.payloads) == 1

    def test_histogram_falls_back(self, context):
        ops, client = make_ops(
            context,
            backend_error(400, "pivot rejected"),
            search_result(rows=[{"key": ["t1"], "values": [{"value": 2}]}]),
        )
        result = ops.histogram(time_range="6h")
        assert result["variant"] == "chart"
        assert result["buckets"] == [{"timestamp": "t1", "count": 2}]
        assert result["failed_variants"][0]["variant"] == "symbolic-interval-pivot"
        assert result["interval"] == "5m"
        assert [search_type(payload)["type"] for payload in client.payloads] == ["pivot", "chart"]

    def test_histogram_all_variants_fail(self, context):
        ops, client = make_ops(context, *[backend_error(500, "down") for _ in range(4)])
        result = ops.histogram()
        assert result["error_type"] == "AllVariantsFailed"
        assert [attempt["variant"] for attempt in result["attempts"]] == [
            "symbolic-interval-pivot",
            "chart",
            "simple-pivot",
            "resolved-duration-pivot",
        ]
        assert len(client.payloads) == 4

    def test_histogram_with_huge_range(self, context):
        ops, client = make_ops(context)
        result = ops.histogram(time_range=10**400)
        assert result["error_type"] == "InvalidTimeRange"
        assert result["rule"] == "too_long"
        assert client.payloads == []

    def test_aggregate_field_metrics(self, context):
        ops, client = make_ops(
            context,
            search_result(
                rows=[{"key": ["api"], "values": [{"key": ["count"], "value": 3}, {"key": ["avg"], "value": 40}]}]
            ),
        )
        result = ops.aggregate_field(field="source", metrics="count,avg", value_field="took_ms", limit=5)
        assert result["buckets"] == [{"key": "api", "count": 3, "avg": 40}]
        assert result["metrics"] == ["count", "avg"]
        assert result["value_field"] == "took_ms"
        assert search_type(client.payloads[0])["row_groups"][0]["limit"] == 5

    def test_missing_value_field_never_reaches_backend(self, context):
        ops, client = make_ops(context)
        result = ops.aggregate_field(field="source", metrics=["sum"])
        assert result["error_type"] == "MissingValueField"
        assert client.payloads == []

    def test_missing_group_field(self, context):
        ops, client = make_ops(context)
        assert ops.field_time_aggregation(field=" ")["error_type"] == "MissingRequiredParameter"
        assert client.payloads == []

    def test_list_field_values(self, context):
        ops, client = make_ops(
            context,
            search_result(
                rows=[
                    {"key": ["api"], "values": [{"key": ["count"], "value": 9}]},
                    {"key": ["web"], "values": [{"key": ["count"], "value": 4}]},
                ]
            ),
        )
        result = ops.list_field_values(field="source")
        assert result["values"] == [{"value": "api", "count": 9}, {"value": "web", "count": 4}]
        assert "buckets" not in result
        assert client.payloads[0]["queries"][0]["timerange"] == {"type": "relative", "range": 3600}
        assert search_type(client.payloads[0])["row_groups"][0]["limit"] == 20

    def test_preview_does_not_execute(self, context):
        ops, client = make_ops(context)
        result = ops.preview_aggregation(kind="histogram", time_range="2d")
        assert [variant["variant"] for variant in result["variants"]] == [
            "symbolic-interval-pivot",
            "chart",
            "simple-pivot",
            "resolved-duration-pivot",
        ]
        assert result["interval"] == "1h"
        assert client.payloads == []

    def test_preview_unknown_kind(self, context):
        ops, _ = make_ops(context)
        assert ops.preview_aggregation(kind="pie")["error_type"] == "InvalidParameter"
