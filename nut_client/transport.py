# NUT Client - Line Transport
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Owns the TCP connection to upsd: writes one command line at a time and reads
# back either a single reply line or a LIST block up to its END terminator.
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

"""nut_client.transport

LineTransport: a blocking, half-duplex line transport for the upsd protocol.

Framing rules
- Every command is a single line terminated by ``\\n``.
- ``LIST ...`` commands answer with a block of lines closed by an echoed
  ``END LIST ...`` line. The terminator is included in the returned lines.
- Every other command answers with exactly one line.
- An ``ERR ...`` reply is always a single line, even for LIST commands.

Thread safety
- None. A transport (and the client owning it) belongs to one thread; the
  caller must finish reading a reply before sending the next command.
"""
from __future__ import annotations

import logging
import socket
from typing import List, Optional, Tuple

from .errors import NUTProtocolError, NUTTransportError

log = logging.getLogger(__name__)

DEFAULT_PORT = 3493
ERROR_MARKER = "ERR "
ACK_LINE = "OK"

# Commands whose reply is a bare acknowledgement line
_ACK_PREFIXES = ("USERNAME ", "PASSWORD ", "SET ")
_ACK_COMMANDS = ("HELP", "VER", "NETVER")


def select_terminator(command: str) -> Tuple[str, bool]:
    """Return ``(terminator, multi_line)`` for a command line.

    Acknowledged commands (USERNAME, PASSWORD, SET, HELP, VER, NETVER) end on
    ``OK``; LIST commands read until ``END <command>``; anything else is a
    single-line reply.
    """
    if command.startswith(_ACK_PREFIXES) or command in _ACK_COMMANDS:
        return ACK_LINE, False
    terminator = f"END {command}"
    return terminator, command.startswith("LIST ")


class LineTransport:
    """Blocking newline-delimited TCP transport.

    Usage::

        transport = LineTransport("localhost")
        transport.connect()
        transport.send("LIST UPS")
        lines = transport.read_response("END LIST UPS", multi_line=True)
        transport.close()
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: Optional[float] = None, connect_timeout: Optional[float] = None):
        self.host = host
        self.port = port
        # Deadline for each send/recv once connected; None blocks forever.
        self.timeout = timeout
        self.connect_timeout = connect_timeout

        self._sock: Optional[socket.socket] = None
        self._recv_buf = b''
        self._eof = False

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        """Open the TCP connection.

        Raises NUTTransportError if the server cannot be reached.
        """
        log.debug("connecting to %s:%s", self.host, self.port)
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except OSError as exc:
            raise NUTTransportError(f"cannot connect to {self.host}:{self.port}: {exc}") from exc
        sock.settimeout(self.timeout)
        self.attach(sock)
        log.info("connected to %s:%s", self.host, self.port)

    def attach(self, sock: socket.socket) -> None:
        """Use an already connected socket (e.g. one end of a socketpair)."""
        self._sock = sock
        self._recv_buf = b''
        self._eof = False

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as exc:
            log.debug("error closing socket: %s", exc)
        finally:
            self._sock = None
            self._recv_buf = b''
            log.debug("disconnected from %s:%s", self.host, self.port)

    def send(self, command: str) -> None:
        """Write ``command`` followed by a newline in a single sendall."""
        if self._sock is None:
            raise NUTTransportError("not connected")
        data = (command + "\n").encode("utf-8")
        try:
            self._sock.sendall(data)
        except OSError as exc:
            raise NUTTransportError(f"write failed: {exc}") from exc

    def _read_line(self) -> Optional[str]:
        """Return the next line without its newline, or None on clean EOF."""
        while b'\n' not in self._recv_buf:
            if self._eof:
                return None
            try:
                chunk = self._sock.recv(4096)
            except OSError as exc:
                # socket.timeout is an OSError too
                raise NUTTransportError(f"read failed: {exc}") from exc
            if not chunk:
                log.debug("connection closed by peer")
                self._eof = True
                continue
            self._recv_buf += chunk
        line_bytes, self._recv_buf = self._recv_buf.split(b'\n', 1)
        try:
            line = line_bytes.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise NUTProtocolError(f"reply is not valid UTF-8: {line_bytes!r}") from exc
        return line.rstrip('\r')

    def read_response(self, terminator: str, multi_line: bool) -> List[str]:
        """Read one reply.

        In single-line mode the first line is returned. In multi-line mode
        lines are collected until one equals ``terminator`` (kept as the last
        element), unless the first line is an ``ERR`` reply.

        Raises NUTProtocolError if the stream ends before the reply is
        complete, NUTTransportError on socket errors.
        """
        if self._sock is None:
            raise NUTTransportError("not connected")
        response: List[str] = []
        while True:
            line = self._read_line()
            if line is None:
                if multi_line and response:
                    raise NUTProtocolError(f"connection closed before {terminator!r} ({len(response)} lines read)")
                raise NUTProtocolError("connection closed before a reply was received")
            response.append(line)
            if not multi_line or line == terminator:
                break
            if len(response) == 1 and line.startswith(ERROR_MARKER):
                break
        return response
