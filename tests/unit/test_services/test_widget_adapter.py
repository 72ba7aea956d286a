"""Unit tests for PaymentWidgetAdapter."""
from unittest.mock import MagicMock
import pytest
from mindbridge.core.exceptions import ScriptLoadTimeout
from mindbridge.integrations.airwallex.widget import BridgeSDK, ScriptUnavailable
from mindbridge.models.widget import WidgetFailed, WidgetReady, WidgetSettled
from mindbridge.services.widget_adapter import PaymentWidgetAdapter


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def recorder():
    return Recorder()


def mount_adapter(recorder, loader=None, **kwargs):
    adapter = PaymentWidgetAdapter(loader or (lambda: BridgeSDK("https://sdk.example/index.js")), **kwargs)
    mounted = adapter.mount(
        "int_1",
        "secret_1",
        "HKD",
        on_ready=recorder,
        on_settled=recorder,
        on_failed=recorder
    )
    return adapter, mounted


class TestMount:
    """Test widget mounting."""

    def test_mount_configures_drop_in(self, recorder):
        adapter, mounted = mount_adapter(recorder)

        assert mounted is True
        assert adapter.mounted
        assert adapter.element.element_type == "dropIn"
        assert adapter.element.options["intent_id"] == "int_1"
        assert adapter.element.options["client_secret"] == "secret_1"
        assert adapter.element.target == "airwallex-dropin-element"

    def test_mount_only_once(self, recorder):
        adapter, _ = mount_adapter(recorder)

        with pytest.raises(RuntimeError):
            adapter.mount("int_2", "secret", "HKD")

    def test_script_load_timeout(self, recorder):
        sleeps = []

        def loader():
            raise ScriptUnavailable("offline")

        adapter, mounted = mount_adapter(recorder, loader=loader, load_attempts=3, sleep=sleeps.append)

        assert mounted is False
        assert sleeps == [1.0, 1.0]
        assert isinstance(adapter.load_error, ScriptLoadTimeout)
        assert adapter.load_error.attempts == 3
        assert len(recorder.events) == 1
        assert isinstance(recorder.events[0], WidgetFailed)
        assert recorder.events[0].code == "SCRIPT_LOAD_TIMEOUT"

    def test_script_load_recovers_on_retry(self, recorder):
        attempts = []

        def loader():
            attempts.append(1)
            if len(attempts) == 1:
                raise ScriptUnavailable("slow network")
            return BridgeSDK("https://sdk.example/index.js")

        adapter, mounted = mount_adapter(recorder, loader=loader, sleep=lambda _: None)

        assert mounted is True
        assert len(attempts) == 2
        assert recorder.events == []


class TestEvents:
    """Test event translation and delivery."""

    def test_each_event_fires_at_most_once(self, recorder):
        adapter, _ = mount_adapter(recorder)

        adapter.dispatch("ready")
        adapter.dispatch("ready")
        adapter.dispatch("success", {"intent": {"id": "int_1"}})
        adapter.dispatch("success", {"intent": {"id": "int_1"}})

        assert recorder.events == [WidgetReady("int_1"), WidgetSettled("int_1", "int_1")]
        assert adapter.has_fired(WidgetSettled)
        assert not adapter.has_fired(WidgetFailed)

    def test_failed_and_settled_are_independent(self, recorder):
        adapter, _ = mount_adapter(recorder)

        adapter.dispatch("error", {"error": {"message": "Card declined", "code": "card_declined"}})
        adapter.dispatch("success", {})

        assert [type(e) for e in recorder.events] == [WidgetFailed, WidgetSettled]

    def test_unhandled_events_are_ignored(self, recorder):
        adapter, _ = mount_adapter(recorder)

        assert adapter.dispatch("change", {"complete": True}) is False
        assert recorder.events == []

    def test_nothing_fires_after_unmount(self, recorder):
        adapter, _ = mount_adapter(recorder)

        adapter.unmount()

        assert adapter.dispatch("success", {}) is False
        assert recorder.events == []
        assert not adapter.mounted


class TestUnmount:
    """Test widget teardown."""

    def test_teardown_errors_are_swallowed(self, recorder):
        element = MagicMock()
        element.unmount.side_effect = RuntimeError("element already destroyed")
        sdk = MagicMock()
        sdk.create_element.return_value = element
        adapter, _ = mount_adapter(recorder, loader=lambda: sdk)

        adapter.unmount()
        adapter.unmount()

        element.unmount.assert_called_once()

    def test_unmount_before_mount(self):
        adapter = PaymentWidgetAdapter(lambda: BridgeSDK("https://sdk.example/index.js"))

        adapter.unmount()

        assert not adapter.mounted
