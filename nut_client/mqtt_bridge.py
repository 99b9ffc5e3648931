#!/usr/bin/env python3
# NUT Client - MQTT Bridge
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Connects to a NUT (upsd) server, polls every UPS, and publishes the
# variables to an MQTT broker for HomeAssistant integration. Instant commands
# sent from HomeAssistant are forwarded to upsd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""
MQTT Bridge for NUT servers
Publishes UPS variables for HomeAssistant integration

The bridge polls upsd through NUTClient and publishes, per UPS:
- nut/<ups>/availability: "online" / "offline" (retained)
- nut/<ups>/state: JSON document of every variable value (retained)
- homeassistant/sensor/nut_<ups>/<var>/config: discovery for numeric variables

Publishing a command name to nut/<ups>/instcmd fires that instant command.
MQTT callbacks run on paho's network thread, so commands are queued and
executed by the polling loop; the NUT session is only used from one thread.

Usage:
    nut-mqtt-bridge --nut-host 192.168.1.10 --broker 192.168.1.2 --interval 10

Broker and upsd credentials default to the NUT_MQTT_BROKER, NUT_MQTT_PORT,
NUT_MQTT_USERNAME, NUT_MQTT_PASSWORD, NUT_USERNAME and NUT_PASSWORD
environment variables.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import queue
import signal
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

import paho.mqtt.client as mqtt

from nut_client import NUTClient, NUTError, UPS, ValueKind, Variable

log = logging.getLogger(__name__)

TOPIC_PREFIX = "nut"
DISCOVERY_PREFIX = "homeassistant"

# Units and device classes for well-known NUT variables
SENSOR_HINTS: Dict[str, Dict[str, str]] = {
    "battery.charge": {"unit_of_measurement": "%", "device_class": "battery"},
    "battery.runtime": {"unit_of_measurement": "s", "device_class": "duration"},
    "battery.voltage": {"unit_of_measurement": "V", "device_class": "voltage"},
    "battery.temperature": {"unit_of_measurement": "°C", "device_class": "temperature"},
    "input.voltage": {"unit_of_measurement": "V", "device_class": "voltage"},
    "input.frequency": {"unit_of_measurement": "Hz", "device_class": "frequency"},
    "output.voltage": {"unit_of_measurement": "V", "device_class": "voltage"},
    "output.current": {"unit_of_measurement": "A", "device_class": "current"},
    "ups.load": {"unit_of_measurement": "%"},
    "ups.realpower": {"unit_of_measurement": "W", "device_class": "power"},
    "ups.temperature": {"unit_of_measurement": "°C", "device_class": "temperature"},
}


def availability_topic(ups_name: str) -> str:
    return f"{TOPIC_PREFIX}/{ups_name}/availability"


def state_topic(ups_name: str) -> str:
    return f"{TOPIC_PREFIX}/{ups_name}/state"


def command_topic(ups_name: str) -> str:
    return f"{TOPIC_PREFIX}/{ups_name}/instcmd"


def build_state(ups: UPS) -> Dict[str, Any]:
    """JSON-ready mapping of variable name -> value for one UPS."""
    state: Dict[str, Any] = {var.name: var.value.data for var in ups.variables}
    state["_description"] = ups.description
    state["_logins"] = ups.number_of_logins
    return state


def device_config(ups: UPS, server_version: str) -> Dict[str, Any]:
    manufacturer = ups.get_variable("device.mfr") or ups.get_variable("ups.mfr")
    model = ups.get_variable("device.model") or ups.get_variable("ups.model")
    return {
        "identifiers": [f"nut_{ups.name}"],
        "name": ups.description if ups.description and ups.description != "Unavailable" else ups.name,
        "manufacturer": str(manufacturer.value) if manufacturer else "Unknown",
        "model": str(model.value) if model else "UPS",
        "sw_version": server_version,
    }


def sensor_config(ups: UPS, var: Variable, device: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """HomeAssistant discovery payload for a numeric variable, else None."""
    if var.value.kind not in (ValueKind.INTEGER, ValueKind.FLOAT):
        return None
    config: Dict[str, Any] = {
        "name": var.description if var.description and var.description != "Unavailable" else var.name,
        "state_topic": state_topic(ups.name),
        "value_template": f"{{{{ value_json['{var.name}'] }}}}",
        "state_class": "measurement",
        "availability_topic": availability_topic(ups.name),
        "unique_id": f"nut_{ups.name}_{var.name.replace('.', '_')}",
        "device": device,
    }
    config.update(SENSOR_HINTS.get(var.name, {}))
    return config


class NUTMQTTBridge:
    def __init__(self, nut_host="localhost", nut_port=3493, nut_username=None, nut_password=None, broker="localhost", port=1883, username=None, password=None, timeout=10.0):
        self.nut_host = nut_host
        self.nut_port = nut_port
        self.nut_username = nut_username
        self.nut_password = nut_password
        self.broker = broker
        self.mqtt_port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id="nut_mqtt_bridge")
        self.running = True

        self.nut: Optional[NUTClient] = None
        self.ups_list: List[UPS] = []
        # Availability last published per UPS, to detect changes
        self.published_availability: Dict[str, str] = {}
        # (ups_name, command_name) pairs queued by on_message
        self.pending_commands: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        self.configured = False

        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self.client.on_message = self.on_message

    def on_connect(self, client, userdata, connect_flags, reason_code, properties):
        """Callback for when the client connects to the broker"""
        if reason_code == 0:
            log.info(f"Connected to MQTT broker at {self.broker}:{self.mqtt_port}")
            client.subscribe(f"{TOPIC_PREFIX}/+/instcmd", qos=1)
        else:
            log.error(f"Failed to connect to MQTT broker, return code {reason_code}")

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        log.info(f"Disconnected from MQTT broker (code: {reason_code})")

    def on_message(self, client, userdata, msg):
        """Queue an instant command received on nut/<ups>/instcmd"""
        parts = msg.topic.split("/")
        if len(parts) != 3 or parts[0] != TOPIC_PREFIX or parts[2] != "instcmd":
            return
        try:
            command_name = msg.payload.decode('utf-8').strip()
        except UnicodeDecodeError:
            log.warning(f"Non UTF-8 instant command on {msg.topic}: {msg.payload!r} (ignored)")
            return
        if not command_name or " " in command_name:
            log.warning(f"Invalid instant command on {msg.topic}: '{command_name}' (ignored)")
            return
        self.pending_commands.put((parts[1], command_name))

    def run_pending_commands(self):
        while True:
            try:
                ups_name, command_name = self.pending_commands.get_nowait()
            except queue.Empty:
                return
            ups = next((u for u in self.ups_list if u.name == ups_name), None)
            if ups is None or self.nut is None:
                log.warning(f"Instant command {command_name} for unknown UPS {ups_name} (ignored)")
                continue
            if command_name not in {cmd.name for cmd in ups.commands}:
                log.warning(f"UPS {ups_name} does not support {command_name} (ignored)")
                continue
            try:
                ok = ups.send_instant_command(self.nut, command_name)
            except NUTError as exc:
                log.error(f"Instant command {ups_name}:{command_name} failed: {exc}")
                continue
            log.info(f"Instant command: {ups_name}:{command_name} ({'OK' if ok else 'FAILED'})")

    def publish_availability(self, ups_name: str, value: str):
        if self.published_availability.get(ups_name) == value:
            return
        result = self.client.publish(availability_topic(ups_name), value, qos=1, retain=True)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            log.error(f"ERROR publishing availability: {mqtt.error_string(result.rc)}")
            return
        self.published_availability[ups_name] = value
        log.debug(f"Published: {availability_topic(ups_name)} = {value}")

    def publish_config(self):
        """Publish sensor configurations for HomeAssistant autodiscovery"""
        version = self.nut.version if self.nut else ""
        for ups in self.ups_list:
            device = device_config(ups, version)
            for var in ups.variables:
                config = sensor_config(ups, var, device)
                if config is None:
                    continue
                topic = f"{DISCOVERY_PREFIX}/sensor/nut_{ups.name}/{var.name.replace('.', '_')}/config"
                self.client.publish(topic, json.dumps(config), qos=1, retain=True)
                log.debug(f"Published config for {ups.name}:{var.name}")

    def publish_state(self):
        for ups in self.ups_list:
            self.client.publish(state_topic(ups.name), json.dumps(build_state(ups)), qos=1, retain=True)
            self.publish_availability(ups.name, "online")

    def mark_offline(self):
        for name in list(self.published_availability):
            self.publish_availability(name, "offline")

    def poll(self):
        """Refresh every UPS; reconnects to upsd when the session is gone."""
        if self.nut is None or not self.nut.connected:
            self.nut = NUTClient(self.nut_host, self.nut_port, timeout=self.timeout, connect_timeout=self.timeout)
            self.nut.connect()
            if self.nut_username:
                self.nut.authenticate(self.nut_username, self.nut_password or "")
            self.configured = False
        self.run_pending_commands()
        self.ups_list = self.nut.get_ups_list()
        if not self.configured:
            self.publish_config()
            self.configured = True
        self.publish_state()

    def connect(self):
        """Connect to the MQTT broker"""
        if self.username and self.password:
            self.client.username_pw_set(self.username, self.password)
        try:
            log.debug(f"Connecting to MQTT broker at {self.broker}:{self.mqtt_port}...")
            self.client.connect(self.broker, self.mqtt_port, keepalive=60)
            self.client.loop_start()
            return True
        except OSError as e:
            log.error(f"Failed to connect to MQTT broker: {e}")
            return False

    def disconnect(self):
        """Disconnect from MQTT broker and upsd"""
        log.info("Shutting down...")
        self.mark_offline()
        self.client.loop_stop()
        self.client.disconnect()
        self.close_session()
        self.running = False

    def close_session(self):
        """LOGOUT from upsd, or just drop the socket if a reply is still pending"""
        if self.nut is None or not self.nut.connected:
            return
        if self.nut.busy:
            # The pending reply would be read as the LOGOUT answer
            self.nut.close()
            return
        try:
            self.nut.disconnect()
        except NUTError as exc:
            log.debug(f"LOGOUT failed: {exc}")

    def run(self, interval=10):
        """Main loop - poll upsd and publish every `interval` seconds"""
        if not self.connect():
            return
        log.info(f"Publishing NUT status every {interval} second(s)...")
        backoff = 1.0
        try:
            while self.running:
                try:
                    self.poll()
                    backoff = 1.0
                    time.sleep(interval)
                except NUTError as exc:
                    log.info(f"upsd unavailable: {exc}")
                    self.mark_offline()
                    if self.nut is not None:
                        self.nut.close()
                    time.sleep(backoff)
                    backoff = min(backoff * 2, 60.0)
        except KeyboardInterrupt:
            log.info("Interrupted by user")
            self.disconnect()

    def signal_handler(self, sig, frame):
        """Handle termination signals gracefully (SIGINT from Ctrl+C, SIGTERM from kill)"""
        self.disconnect()
        sys.exit(0)


def main():
    """Main entry point"""
    env = os.environ
    parser = argparse.ArgumentParser(description="MQTT bridge for a NUT (upsd) server")
    parser.add_argument("--nut-host", default="localhost", help="upsd hostname or IP (default: localhost)")
    parser.add_argument("--nut-port", default=3493, type=int, help="upsd port (default: 3493)")
    parser.add_argument("--nut-username", default=env.get("NUT_USERNAME"))
    parser.add_argument("--nut-password", default=env.get("NUT_PASSWORD"))
    parser.add_argument("--broker", default=env.get("NUT_MQTT_BROKER", "localhost"))
    parser.add_argument("--broker-port", default=int(env.get("NUT_MQTT_PORT", "1883")), type=int)
    parser.add_argument("--mqtt-username", default=env.get("NUT_MQTT_USERNAME"))
    parser.add_argument("--mqtt-password", default=env.get("NUT_MQTT_PASSWORD"))
    parser.add_argument("--interval", default=10, type=int, help="Publish interval in seconds (default: 10)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    args = parser.parse_args()

    # Configure logging with timestamp
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    log_format = '[%(asctime)s] %(levelname)s: %(message)s'
    logging.basicConfig(level=log_level, format=log_format, datefmt='%H:%M:%S')

    bridge = NUTMQTTBridge(
        nut_host=args.nut_host,
        nut_port=args.nut_port,
        nut_username=args.nut_username,
        nut_password=args.nut_password,
        broker=args.broker,
        port=args.broker_port,
        username=args.mqtt_username,
        password=args.mqtt_password,
    )

    signal.signal(signal.SIGINT, bridge.signal_handler)
    signal.signal(signal.SIGTERM, bridge.signal_handler)

    bridge.run(interval=args.interval)


if __name__ == "__main__":
    main()
