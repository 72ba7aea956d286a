"""Unit tests for typed widget events."""
from mindbridge.models.widget import WidgetFailed, WidgetReady, WidgetSettled, parse_widget_event


class TestParseWidgetEvent:
    """Test raw widget callback translation."""

    def test_ready(self):
        assert parse_widget_event("int_1", "ready", None) == WidgetReady("int_1")

    def test_success_takes_intent_reference(self):
        event = parse_widget_event("int_1", "success", {"intent": {"id": "int_1", "status": "SUCCEEDED"}})

        assert isinstance(event, WidgetSettled)
        assert event.outcome_reference == "int_1"

    def test_success_without_detail(self):
        event = parse_widget_event("int_1", "success", {})

        assert event == WidgetSettled("int_1", None)

    def test_error_carries_message_and_code(self):
        event = parse_widget_event("int_1", "error", {"error": {"message": "Card declined", "code": "card_declined"}})

        assert isinstance(event, WidgetFailed)
        assert event.reason == "Card declined"
        assert event.code == "card_declined"

    def test_error_with_plain_string(self):
        event = parse_widget_event("int_1", "error", {"error": "boom"})

        assert event.reason == "boom"
        assert event.code is None

    def test_unhandled_events_are_ignored(self):
        assert parse_widget_event("int_1", "change", {"complete": True}) is None
