"""Tests for mqtt/client.py: DeviceChannel against a fake paho client."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import paho.mqtt.client as mqtt
import pytest

from conftest import FakeMessageInfo, FakeMqttMessage
from petfeeder.core.exceptions import ConnectionUnavailable
from petfeeder.mqtt.client import DeviceChannel
from petfeeder.schemas.command import ConnectionState
from petfeeder.services.command_encoder import build_command

NOW = datetime(2026, 10, 19, 7, 30, tzinfo=timezone.utc)


@pytest.fixture
def channel(test_settings, fake_mqtt) -> DeviceChannel:
    return DeviceChannel(test_settings, client=fake_mqtt)


def _feed():
    return build_command("feed", "small", schedule_id=1, log_id=2, now=NOW)


class TestLifecycle:
    def test_initial_state(self, channel) -> None:
        assert channel.state is ConnectionState.DISCONNECTED
        assert channel.status().connected is False

    def test_start_configures_client(self, channel, fake_mqtt) -> None:
        channel.start()
        assert fake_mqtt.connect_args == ("broker.test", 1883, 60)
        assert fake_mqtt.reconnect_delay == (5, 5)
        assert fake_mqtt.connect_timeout == 10.0
        assert fake_mqtt.loop_started
        assert channel.state is ConnectionState.CONNECTING

    def test_start_twice_is_noop(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.connect_args = None
        channel.start()
        assert fake_mqtt.connect_args is None

    def test_connect_subscribes_response_topic(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        assert channel.state is ConnectionState.CONNECTED
        assert fake_mqtt.subscriptions == [("petfeeder/servo/response", 1)]

    def test_refused_connect_stays_disconnected(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect(reason_code=5)
        assert channel.state is ConnectionState.DISCONNECTED
        assert fake_mqtt.subscriptions == []

    def test_connect_fail_then_reconnect(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.on_connect_fail(fake_mqtt, None)
        assert channel.state is ConnectionState.DISCONNECTED
        fake_mqtt.on_pre_connect(fake_mqtt, None)
        assert channel.state is ConnectionState.CONNECTING
        fake_mqtt.simulate_connect()
        assert channel.is_connected

    def test_broker_close_disconnects(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        fake_mqtt.simulate_disconnect()
        assert channel.state is ConnectionState.DISCONNECTED

    def test_stop_goes_offline(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        channel.stop()
        assert fake_mqtt.disconnected
        assert not fake_mqtt.loop_started
        assert channel.state is ConnectionState.OFFLINE
        assert channel.status().connected is False

    def test_bad_transport_is_fatal(self, test_settings, fake_mqtt) -> None:
        cfg = test_settings.model_copy(update={"MQTT_BROKER_HOST": ""})
        channel = DeviceChannel(cfg, client=fake_mqtt)
        with pytest.raises(ConnectionUnavailable):
            channel.start()
        assert channel.state is ConnectionState.DISCONNECTED


class TestPublish:
    def test_not_connected_returns_false(self, channel, fake_mqtt) -> None:
        assert channel.publish(_feed()) is False
        channel.start()
        assert channel.publish(_feed()) is False
        assert fake_mqtt.published == []

    def test_acknowledged_publish(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()

        assert channel.publish(_feed()) is True

        topic, payload, qos, retain = fake_mqtt.published[0]
        assert topic == "petfeeder/servo"
        assert qos == 1
        assert retain is False
        data = json.loads(payload)
        assert data["action"] == "feed"
        assert data["duration"] == 2000
        assert data["logId"] == "2"
        assert fake_mqtt.next_info.wait_timeout == 0.1

    def test_no_puback_returns_false(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        fake_mqtt.next_info = FakeMessageInfo(published=False)
        assert channel.publish(_feed()) is False

    def test_rejected_publish_returns_false(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        fake_mqtt.next_info = FakeMessageInfo(rc=mqtt.MQTT_ERR_NO_CONN)
        assert channel.publish(_feed()) is False

    def test_client_exception_never_escapes(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        fake_mqtt.publish_error = RuntimeError("socket gone")
        assert channel.publish(_feed()) is False

    def test_after_stop_returns_false(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        channel.stop()
        assert channel.publish(_feed()) is False


class TestStatusAndResponses:
    def test_status_snapshot(self, channel, fake_mqtt) -> None:
        channel.start()
        fake_mqtt.simulate_connect()
        snap = channel.status()
        assert snap.connected is True
        assert snap.state is ConnectionState.CONNECTED
        assert snap.broker_address == "broker.test:1883"
        assert snap.command_topic == "petfeeder/servo"
        assert snap.response_topic == "petfeeder/servo/response"

    def test_response_messages_are_only_logged(self, channel, fake_mqtt, caplog, monkeypatch) -> None:
        # setup_logging() turns propagation off; caplog listens on the root logger
        monkeypatch.setattr(logging.getLogger("petfeeder"), "propagate", True)
        channel.start()
        fake_mqtt.simulate_connect()
        with caplog.at_level("INFO", logger="petfeeder"):
            fake_mqtt.on_message(
                fake_mqtt, None,
                FakeMqttMessage("petfeeder/servo/response", b'{"status": "done", "logId": "2"}'),
            )
            fake_mqtt.on_message(
                fake_mqtt, None,
                FakeMqttMessage("petfeeder/servo/response", b"\xff not json"),
            )
        assert channel.is_connected
        assert "device response" in caplog.text
        assert "bad response payload" in caplog.text
