# NUT Client - Network UPS Tools Client Library
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# This module provides a lightweight synchronous client for the Network UPS
# Tools (upsd) text protocol, with typed UPS variables and a mapped error
# catalog.
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

"""NUT client package

This package talks to a Network UPS Tools server (upsd, TCP port 3493) over
its line-oriented text protocol. It exposes:

- `NUTClient`: a blocking session that authenticates, lists UPS devices and
  dispatches raw protocol commands.
- `UPS`, `Variable`, `Command`: the populated device model. Variables carry
  a `VariableValue` tagged with its `ValueKind` (string, boolean, integer or
  float).
- `NUTError` and its subclasses for transport, protocol and server errors.

Example::

    from nut_client import NUTClient

    with NUTClient("127.0.0.1", 3493) as client:
        client.authenticate("username", "password")
        ups = client.get_ups_list()[0]
        print(ups.name, ups.get_variable("battery.charge").value)
"""

from .client import NUTClient
from .errors import (
    ERROR_MESSAGES,
    NUTError,
    NUTProtocolError,
    NUTServerError,
    NUTTransportError,
    error_for_code,
)
from .parser import ValueKind, VariableValue, coerce_value
from .ups import UPS, Command, Variable, build_ups

__all__ = [
    "NUTClient",
    "UPS",
    "Variable",
    "Command",
    "VariableValue",
    "ValueKind",
    "build_ups",
    "coerce_value",
    "NUTError",
    "NUTTransportError",
    "NUTProtocolError",
    "NUTServerError",
    "ERROR_MESSAGES",
    "error_for_code",
]
__version__ = "0.1.0"
