"""Shared fixtures: a scripted transport standing in for upsd."""

from __future__ import annotations

from typing import Dict, List, Union

import pytest

from nut_client import NUTClient
from nut_client.errors import NUTTransportError


class FakeTransport:
    """Answers each command from a table and records what was sent.

    A table value may be a list of reply lines or an exception to raise
    when the reply is read.
    """

    def __init__(self, responses: Dict[str, Union[List[str], Exception]]):
        self.responses = dict(responses)
        self.sent: List[str] = []
        self.connected = False
        self.closed = 0

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False
        self.closed += 1

    def send(self, command: str) -> None:
        if not self.connected:
            raise NUTTransportError("not connected")
        self.sent.append(command)

    def read_response(self, terminator: str, multi_line: bool) -> List[str]:
        reply = self.responses[self.sent[-1]]
        if isinstance(reply, Exception):
            raise reply
        return list(reply)


BASE_RESPONSES = {
    "VER": ["Network UPS Tools upsd 2.8.0 - http://www.networkupstools.org/"],
    "NETVER": ["1.3"],
}

UPS1_RESPONSES = {
    "LIST UPS": ["BEGIN LIST UPS", 'UPS ups1 "Main UPS"', "END LIST UPS"],
    "LIST CLIENT ups1": [
        "BEGIN LIST CLIENT ups1",
        "CLIENT ups1 192.168.1.5",
        "CLIENT ups1 ::1",
        "END LIST CLIENT ups1",
    ],
    "LIST CMD ups1": [
        "BEGIN LIST CMD ups1",
        "CMD ups1 beeper.toggle",
        "CMD ups1 test.battery.start",
        "END LIST CMD ups1",
    ],
    "GET CMDDESC ups1 beeper.toggle": ['CMDDESC ups1 beeper.toggle "Toggle the UPS beeper"'],
    "GET CMDDESC ups1 test.battery.start": ['CMDDESC ups1 test.battery.start "Start a battery test"'],
    "GET UPSDESC ups1": ['UPSDESC ups1 "Main UPS"'],
    "GET NUMLOGINS ups1": ["NUMLOGINS ups1 2"],
    "LIST VAR ups1": [
        "BEGIN LIST VAR ups1",
        'VAR ups1 battery.charge "100"',
        'VAR ups1 battery.voltage "13.50"',
        'VAR ups1 ups.beeper.status "enabled"',
        'VAR ups1 ups.id "My UPS"',
        'VAR ups1 ups.status "OL"',
        "END LIST VAR ups1",
    ],
    "GET DESC ups1 battery.charge": ['DESC ups1 battery.charge "Battery charge (percent of full)"'],
    "GET TYPE ups1 battery.charge": ["TYPE ups1 battery.charge NUMBER"],
    "GET DESC ups1 battery.voltage": ['DESC ups1 battery.voltage "Battery voltage (V)"'],
    "GET TYPE ups1 battery.voltage": ["TYPE ups1 battery.voltage NUMBER"],
    "GET DESC ups1 ups.beeper.status": ['DESC ups1 ups.beeper.status "UPS beeper status"'],
    "GET TYPE ups1 ups.beeper.status": ["TYPE ups1 ups.beeper.status ENUM"],
    "GET DESC ups1 ups.id": ['DESC ups1 ups.id "UPS system identifier"'],
    "GET TYPE ups1 ups.id": ["TYPE ups1 ups.id RW STRING:20"],
    "GET DESC ups1 ups.status": ['DESC ups1 ups.status "UPS status"'],
    "GET TYPE ups1 ups.status": ["TYPE ups1 ups.status UNKNOWN"],
}


def _make_client(extra=None):
    responses = dict(BASE_RESPONSES)
    responses.update(UPS1_RESPONSES)
    if extra:
        responses.update(extra)
    transport = FakeTransport(responses)
    client = NUTClient("upsd.test", transport=transport)
    client.connect()
    return client, transport


@pytest.fixture
def make_client():
    """Factory building a connected client; extra replies override the defaults."""
    return _make_client


@pytest.fixture
def client_and_transport():
    return _make_client()
