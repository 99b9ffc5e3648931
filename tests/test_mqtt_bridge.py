"""Tests for the MQTT bridge payloads and command queueing."""

from types import SimpleNamespace

import pytest

from nut_client.mqtt_bridge import (
    NUTMQTTBridge,
    build_state,
    device_config,
    sensor_config,
    state_topic,
)


@pytest.fixture
def ups(client_and_transport):
    client, _ = client_and_transport
    return client.get_ups_list()[0]


def test_build_state(ups):
    state = build_state(ups)
    assert state["battery.charge"] == 100
    assert state["battery.voltage"] == 13.5
    assert state["ups.beeper.status"] is True
    assert state["ups.status"] == "OL"
    assert state["_logins"] == 2


def test_sensor_config_for_numeric_variable(ups):
    device = device_config(ups, "2.8.0")
    config = sensor_config(ups, ups.get_variable("battery.charge"), device)
    assert config["state_topic"] == state_topic("ups1") == "nut/ups1/state"
    assert config["unit_of_measurement"] == "%"
    assert config["device_class"] == "battery"
    assert config["unique_id"] == "nut_ups1_battery_charge"
    assert config["value_template"] == "{{ value_json['battery.charge'] }}"
    assert config["device"]["name"] == "Main UPS"


def test_no_sensor_for_strings(ups):
    device = device_config(ups, "2.8.0")
    assert sensor_config(ups, ups.get_variable("ups.status"), device) is None
    assert sensor_config(ups, ups.get_variable("ups.beeper.status"), device) is None


def _message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload.encode("utf-8"))


def test_instcmd_messages_are_queued_and_run(make_client):
    client, transport = make_client({"INSTCMD ups1 beeper.toggle": ["OK"]})
    bridge = NUTMQTTBridge()
    bridge.nut = client
    bridge.ups_list = client.get_ups_list()

    bridge.on_message(None, None, _message("nut/ups1/instcmd", "beeper.toggle\n"))
    bridge.on_message(None, None, _message("nut/ups1/instcmd", "not.a.command"))
    bridge.on_message(None, None, _message("nut/ups1/state", "ignored"))
    bridge.run_pending_commands()

    instcmds = [cmd for cmd in transport.sent if cmd.startswith("INSTCMD")]
    assert instcmds == ["INSTCMD ups1 beeper.toggle"]
    assert bridge.pending_commands.empty()


def test_non_utf8_instcmd_payload_is_ignored():
    bridge = NUTMQTTBridge()
    bridge.on_message(None, None, SimpleNamespace(topic="nut/ups1/instcmd", payload=b"\xff\xfe"))
    assert bridge.pending_commands.empty()


class TestCloseSession:
    def test_logout_when_idle(self, make_client):
        client, transport = make_client({"LOGOUT": ["OK Goodbye"]})
        bridge = NUTMQTTBridge()
        bridge.nut = client
        bridge.close_session()
        assert transport.sent[-1] == "LOGOUT"
        assert not client.connected

    def test_socket_dropped_when_reply_pending(self, make_client):
        client, transport = make_client({"LOGOUT": ["OK Goodbye"]})
        bridge = NUTMQTTBridge()
        bridge.nut = client
        client.busy = True
        bridge.close_session()
        assert "LOGOUT" not in transport.sent
        assert transport.closed == 1
