# NUT Client - Session and Command Dispatcher
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides the NUTClient class: a synchronous session with a upsd server that
# dispatches protocol commands, maps ERR replies to exceptions, authenticates
# and enumerates the UPS devices the server tracks.
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

"""nut_client.client

NUTClient: one blocking session with upsd.

High-level responsibilities
- Open the TCP connection and record the advertised server version (VER)
  and network protocol version (NETVER).
- `send_command`: the single dispatch point. It picks the reply framing,
  sends the command, reads the reply and raises `NUTServerError` when the
  first line is ``ERR <CODE>``.
- Session commands: `authenticate` (USERNAME + PASSWORD), `disconnect`
  (LOGOUT), `help`, `get_version`, `get_network_protocol_version`.
- `get_ups_list`: LIST UPS followed by a full `build_ups` per device.

Design notes
- Nothing is retried here. Transport and protocol errors surface to the
  caller unchanged; reconnecting is the caller's policy.
- One command is outstanding at a time and no locking is done; a client
  must be used from a single thread.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from .errors import NUTProtocolError, error_for_code
from .parser import split_line
from .transport import DEFAULT_PORT, ERROR_MARKER, LineTransport, select_terminator
from .ups import UPS, build_ups

log = logging.getLogger(__name__)

LOGOUT_REPLIES = ("OK Goodbye", "Goodbye...")


def _loggable(command: str) -> str:
    if command.startswith("PASSWORD "):
        return "PASSWORD ****"
    return command


class NUTClient:
    """Synchronous client for a upsd server.

    Supports use as a context manager::

        with NUTClient("localhost") as client:
            client.authenticate("monuser", "secret")
            for ups in client.get_ups_list():
                print(ups.name, ups.description)

    Args:
        host: upsd hostname or IP address.
        port: upsd TCP port.
        timeout: per-operation socket deadline in seconds once connected
            (``None`` blocks indefinitely).
        connect_timeout: deadline for establishing the connection.
        transport: pre-built transport, mainly for tests.
    """

    def __init__(self, host: str = "localhost", port: int = DEFAULT_PORT, timeout: Optional[float] = None, connect_timeout: Optional[float] = None, transport: Optional[LineTransport] = None):
        self.host = host
        self.port = port
        self._transport = transport if transport is not None else LineTransport(host, port, timeout=timeout, connect_timeout=connect_timeout)

        # Filled in by connect()
        self.version: str = ""
        self.protocol_version: str = ""
        # True while a command has been sent and its reply is not yet read
        self.busy = False

    def __enter__(self) -> NUTClient:
        self.connect()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"NUTClient({self.host!r}, port={self.port}, {state})"

    @property
    def connected(self) -> bool:
        return self._transport.connected

    def connect(self) -> None:
        """Open the connection and read the server versions."""
        if not self._transport.connected:
            self._transport.connect()
        try:
            self.version = self.get_version()
            self.protocol_version = self.get_network_protocol_version()
        except Exception:
            self._transport.close()
            raise
        log.info("upsd at %s:%s: version=%r protocol=%r", self.host, self.port, self.version, self.protocol_version)

    def close(self) -> None:
        """Close the socket without sending LOGOUT."""
        self._transport.close()

    def send_command(self, command: str) -> List[str]:
        """Send one protocol command and return its reply lines.

        Raises NUTServerError for ``ERR`` replies; transport and protocol
        errors propagate unchanged.
        """
        terminator, multi_line = select_terminator(command)
        log.debug("TX: %s", _loggable(command))
        self.busy = True
        try:
            self._transport.send(command)
            response = self._transport.read_response(terminator, multi_line)
        finally:
            self.busy = False
        if not response:
            raise NUTProtocolError(f"empty reply to {_loggable(command)!r}")
        log.debug("RX: %s%s", response[0], f" (+{len(response) - 1} lines)" if len(response) > 1 else "")
        if response[0].startswith(ERROR_MARKER):
            tokens = response[0].split(" ")
            code = tokens[1] if len(tokens) > 1 else ""
            raise error_for_code(code)
        return response

    def authenticate(self, username: str, password: str) -> bool:
        """Send USERNAME then PASSWORD; True only if both are acknowledged."""
        username_resp = self.send_command(f"USERNAME {username}")
        password_resp = self.send_command(f"PASSWORD {password}")
        ok = username_resp[0] == "OK" and password_resp[0] == "OK"
        if not ok:
            log.warning("authentication as %r not acknowledged: %r / %r", username, username_resp[0], password_resp[0])
        return ok

    def disconnect(self) -> bool:
        """Send LOGOUT and close the connection.

        Returns True when the server answered with one of its farewell
        lines.
        """
        try:
            resp = self.send_command("LOGOUT")
        finally:
            self._transport.close()
        return resp[0] in LOGOUT_REPLIES

    def get_ups_list(self) -> List[UPS]:
        """Return every UPS known to the server, fully populated."""
        resp = self.send_command("LIST UPS")
        ups_list = []
        for line in resp:
            if not line.startswith("UPS "):
                continue
            tokens = split_line(line)
            if len(tokens) < 2:
                raise NUTProtocolError(f"malformed UPS line {line!r}")
            ups_list.append(build_ups(self, tokens[1]))
        return ups_list

    def get_ups(self, name: str) -> UPS:
        """Build a single UPS by name without listing the others."""
        return build_ups(self, name)

    def help(self) -> str:
        """Return the server's list of supported commands."""
        return self.send_command("HELP")[0]

    def get_version(self) -> str:
        """Return the server version string (VER)."""
        return self.send_command("VER")[0]

    def get_network_protocol_version(self) -> str:
        """Return the network protocol version (NETVER)."""
        return self.send_command("NETVER")[0]
