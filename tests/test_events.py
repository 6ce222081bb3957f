from __future__ import annotations

from fakes import FakeClient
from graylog_mcp.search.events import EventOperations, build_event_search_payload


def test_search_payload_shape():
    payload = build_event_search_payload(" priority:3 ", {"type": "relative", "range": 60}, 2, 10, "only")
    assert payload == {
        "query": "priority:3",
        "page": 2,
        "per_page": 10,
        "filter": {"alerts": "only"},
        "timerange": {"type": "relative", "range": 60},
    }


class TestEventOperations:
    def test_search_defaults(self):
        client = FakeClient()
        client.events = {
            "events": [{"event": {"id": "e1", "message": "disk full"}}, {"event": {"id": "e2", "message": "cpu"}}],
            "total_events": 7,
        }
        result = EventOperations(client).search_events()

        sent = client.event_payloads[0]
        assert sent["timerange"] == {"type": "relative", "range": 86400}
        assert sent["per_page"] == 25
        assert sent["filter"] == {"alerts": "include"}
        assert result["total_events"] == 7
        assert result["returned"] == 2
        assert [event["id"] for event in result["events"]] == ["e1", "e2"]

    def test_invalid_alert_filter(self):
        client = FakeClient()
        result = EventOperations(client).search_events(alerts="sometimes")
        assert result["error_type"] == "InvalidParameter"
        assert client.event_payloads == []

    def test_invalid_time_range(self):
        result = EventOperations(FakeClient()).search_events(time_range="0")
        assert result["error_type"] == "InvalidTimeRange"

    def test_definitions(self):
        client = FakeClient()
        client.definitions = {
            "event_definitions": [{"id": "d1", "title": "Errors spike", "priority": 2, "alert": True, "config": {}}],
            "pagination": {"total": 1},
        }
        result = EventOperations(client).list_event_definitions()
        assert result == {
            "total": 1,
            "event_definitions": [
                {"id": "d1", "title": "Errors spike", "description": None, "priority": 2, "alert": True}
            ],
        }

    def test_notifications(self):
        client = FakeClient()
        client.notifications = {
            "notifications": [{"id": "n1", "title": "Slack", "config": {"type": "slack-notification-v1"}}],
            "pagination": {"total": 1},
        }
        result = EventOperations(client).list_event_notifications()
        assert result["notifications"][0]["type"] == "slack-notification-v1"

    def test_non_object_bodies_are_empty(self):
        client = FakeClient()
        client.events = []
        client.definitions = ["unexpected"]
        client.notifications = "oops"
        operations = EventOperations(client)

        events = operations.search_events()
        assert events["events"] == []
        assert events["total_events"] == 0
        assert operations.list_event_definitions() == {"total": 0, "event_definitions": []}
        assert operations.list_event_notifications() == {"total": 0, "notifications": []}

    def test_malformed_entries_are_skipped(self):
        client = FakeClient()
        client.definitions = {"event_definitions": ["d1", {"id": "d2"}], "pagination": "n/a"}
        client.notifications = {"notifications": [None, {"id": "n1", "config": "slack"}]}
        operations = EventOperations(client)

        definitions = operations.list_event_definitions()
        assert definitions["total"] == 1
        assert [definition["id"] for definition in definitions["event_definitions"]] == ["d2"]
        notifications = operations.list_event_notifications()
        assert notifications["notifications"] == [{"id": "n1", "title": None, "description": None, "type": None}]
        assert notifications["total"] == 1
