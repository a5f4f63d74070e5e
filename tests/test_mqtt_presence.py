"""Tests for the MQTT presence source (no broker needed)."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from models import PowerMode, PowerModeChanged, Presence, PresenceChanged
from mqtt_presence import MqttPresenceSource
from presence_monitor import NotSignedInError

AVAILABILITY = "presence/test/availability"
POWER = "presence/test/power"


def message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload)


@pytest.fixture
def source():
    src = MqttPresenceSource(availability_topic=AVAILABILITY, power_topic=POWER)
    src.events = []
    src.attach(src.events.append)
    return src


class TestMqttPresenceSource:

    def test_not_signed_in_until_first_value(self, source):
        assert not source.is_signed_in
        with pytest.raises(NotSignedInError):
            source.get_presence()

    def test_availability_message(self, source):
        source._on_message(None, None, message(AVAILABILITY, b"DoNotDisturb"))

        assert source.is_signed_in
        assert source.get_presence() is Presence.DO_NOT_DISTURB
        assert source.events == [PresenceChanged()]

    def test_repeated_value_notifies_once(self, source):
        source._on_message(None, None, message(AVAILABILITY, b"Busy"))
        source._on_message(None, None, message(AVAILABILITY, b"Busy"))
        assert source.events == [PresenceChanged()]

    def test_signed_out_payload(self, source):
        source._on_message(None, None, message(AVAILABILITY, b"SignedOut"))

        assert not source.is_signed_in
        with pytest.raises(NotSignedInError):
            source.get_presence()

    def test_signing_back_in(self, source):
        source._on_message(None, None, message(AVAILABILITY, b"SignedOut"))
        source._on_message(None, None, message(AVAILABILITY, b"Free"))

        assert source.is_signed_in
        assert source.get_presence() is Presence.FREE

    @pytest.mark.parametrize("payload", [b"Unreadable", b""])
    def test_unreadable_payload(self, source, payload):
        source._on_message(None, None, message(AVAILABILITY, payload))

        assert source.is_signed_in
        with pytest.raises(NotSignedInError):
            source.get_presence()

    def test_unknown_availability_parses_to_none(self, source):
        source._on_message(None, None, message(AVAILABILITY, b"InACall"))
        assert source.get_presence() is Presence.NONE

    def test_power_messages(self, source):
        source._on_message(None, None, message(POWER, b"suspend"))
        source._on_message(None, None, message(POWER, b"RESUME"))
        source._on_message(None, None, message(POWER, b"hibernate"))

        assert source.events == [
            PowerModeChanged(PowerMode.SUSPEND),
            PowerModeChanged(PowerMode.RESUME),
        ]

    def test_other_topics_ignored(self, source):
        source._on_message(None, None, message("presence/other", b"Busy"))
        assert source.events == []
        assert not source.is_signed_in

    def test_wait_for_presence(self, source):
        assert source.wait_for_presence(0.01) is False
        source._on_message(None, None, message(AVAILABILITY, b"Free"))
        assert source.wait_for_presence(0.01) is True

    def test_subscribes_on_connect(self, source):
        client = MagicMock()
        source._on_connect(client, None, {}, 0, None)
        client.subscribe.assert_any_call(AVAILABILITY, qos=1)
        client.subscribe.assert_any_call(POWER, qos=1)

    def test_no_notifications_after_close(self, source):
        source.client = MagicMock()
        source.close()
        source._on_message(None, None, message(AVAILABILITY, b"Busy"))
        assert source.events == []
        source.client.loop_stop.assert_called_once()
        source.client.disconnect.assert_called_once()
