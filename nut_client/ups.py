# NUT Client - UPS Entities
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides the UPS, Variable and Command types and the builder that populates
# a UPS from a sequence of upsd queries.
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

"""nut_client.ups

A `UPS` is plain data. It keeps no reference to the session it came from;
every method that talks to upsd takes the `NUTClient` as its first argument,
so a UPS can never outlive or silently reuse a closed connection.

`build_ups` issues one query per field (and one per variable and command),
in this order: clients, commands, description, number of logins, variables.
Any failure aborts the build and propagates; a half-built UPS is never
returned.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from .errors import NUTProtocolError
from .parser import (
    TYPE_UNKNOWN,
    VariableValue,
    coerce_value,
    parse_type_response,
    split_line,
    strip_prefix,
)

if TYPE_CHECKING:
    from .client import NUTClient

log = logging.getLogger(__name__)


@dataclass
class Variable:
    """A single UPS variable such as ``battery.charge``.

    ``type`` is the declared wire type, or ``INTEGER``/``FLOAT_64`` when the
    value was coerced, in which case ``original_type`` keeps the declared
    one. ``maximum_length`` is only non-zero for writeable ``STRING:<n>``
    variables.
    """

    name: str
    value: VariableValue
    type: str = TYPE_UNKNOWN
    description: str = ""
    writeable: bool = False
    maximum_length: int = 0
    original_type: str = ""


@dataclass
class Command:
    """An instant command such as ``test.battery.start``."""

    name: str
    description: str = ""


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _list_items(resp: List[str], prefix: List[str]) -> List[List[str]]:
    """Tokens after ``prefix`` for every LIST line carrying that prefix."""
    head = prefix[0] + " "
    items = []
    for line in resp:
        if not line.startswith(head):
            continue
        items.append(strip_prefix(split_line(line), prefix, line))
    return items


def _single(resp: List[str], prefix: List[str]) -> List[str]:
    return strip_prefix(split_line(resp[0]), prefix, resp[0])


@dataclass
class UPS:
    """A UPS tracked by upsd and everything the server reports about it."""

    name: str
    description: str = ""
    master: bool = False
    number_of_logins: int = 0
    clients: List[str] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    commands: List[Command] = field(default_factory=list)

    def get_variable(self, name: str) -> Optional[Variable]:
        """Look up an already fetched variable by name."""
        for var in self.variables:
            if var.name == name:
                return var
        return None

    def get_clients(self, client: NUTClient) -> List[str]:
        """Return the addresses of the clients logged in to this UPS."""
        resp = client.send_command(f"LIST CLIENT {self.name}")
        self.clients = [" ".join(tokens) for tokens in _list_items(resp, ["CLIENT", self.name])]
        return self.clients

    def get_commands(self, client: NUTClient) -> List[Command]:
        """Return the instant commands of this UPS, each with its description."""
        resp = client.send_command(f"LIST CMD {self.name}")
        commands = []
        for tokens in _list_items(resp, ["CMD", self.name]):
            cmd_name = " ".join(tokens)
            commands.append(Command(cmd_name, self.get_command_description(client, cmd_name)))
        self.commands = commands
        return commands

    def get_command_description(self, client: NUTClient, command_name: str) -> str:
        resp = client.send_command(f"GET CMDDESC {self.name} {command_name}")
        return " ".join(_single(resp, ["CMDDESC", self.name, command_name]))

    def get_description(self, client: NUTClient) -> str:
        """Return ``desc=`` from ups.conf; upsd answers "Unavailable" if unset."""
        resp = client.send_command(f"GET UPSDESC {self.name}")
        self.description = " ".join(_single(resp, ["UPSDESC", self.name]))
        return self.description

    def get_number_of_logins(self, client: NUTClient) -> int:
        """Return how many clients have done LOGIN for this UPS."""
        resp = client.send_command(f"GET NUMLOGINS {self.name}")
        tokens = _single(resp, ["NUMLOGINS", self.name])
        try:
            self.number_of_logins = int(tokens[0])
        except (IndexError, ValueError) as exc:
            raise NUTProtocolError(f"invalid NUMLOGINS reply {resp[0]!r}") from exc
        return self.number_of_logins

    def get_variables(self, client: NUTClient) -> List[Variable]:
        """Return every variable of this UPS with description, type and coerced value."""
        resp = client.send_command(f"LIST VAR {self.name}")
        variables = []
        for tokens in _list_items(resp, ["VAR", self.name]):
            if len(tokens) < 2:
                raise NUTProtocolError(f"VAR line for {self.name} without a value: {tokens!r}")
            var_name, raw = tokens[0], tokens[1]
            description = self.get_variable_description(client, var_name)
            declared_type, writeable, maximum_length = self.get_variable_type(client, var_name)
            value, var_type, original_type = coerce_value(raw, declared_type)
            variables.append(Variable(
                name=var_name,
                value=value,
                type=var_type,
                description=description,
                writeable=writeable,
                maximum_length=maximum_length,
                original_type=original_type,
            ))
        self.variables = variables
        return variables

    def get_variable_description(self, client: NUTClient, variable_name: str) -> str:
        """Return upsd's explanation of ``variable_name`` (may be "Unavailable")."""
        resp = client.send_command(f"GET DESC {self.name} {variable_name}")
        return " ".join(_single(resp, ["DESC", self.name, variable_name]))

    def get_variable_type(self, client: NUTClient, variable_name: str) -> Tuple[str, bool, int]:
        """Return ``(type, writeable, maximum_length)`` for ``variable_name``."""
        resp = client.send_command(f"GET TYPE {self.name} {variable_name}")
        return parse_type_response(_single(resp, ["TYPE", self.name, variable_name]))

    def get_variable_value(self, client: NUTClient, variable_name: str) -> VariableValue:
        """Fetch one variable's current value with GET VAR.

        If the variable was already fetched its entry is updated in place,
        coercing against its declared type.
        """
        resp = client.send_command(f"GET VAR {self.name} {variable_name}")
        tokens = _single(resp, ["VAR", self.name, variable_name])
        if not tokens:
            raise NUTProtocolError(f"VAR reply without a value: {resp[0]!r}")
        var = self.get_variable(variable_name)
        declared_type = TYPE_UNKNOWN
        if var is not None:
            declared_type = var.original_type or var.type
        value, var_type, original_type = coerce_value(tokens[0], declared_type)
        if var is not None:
            var.value = value
            var.type = var_type
            var.original_type = original_type
        return value

    def check_if_master(self, client: NUTClient) -> bool:
        """Request master permission; True (and ``master`` set) on OK."""
        resp = client.send_command(f"MASTER {self.name}")
        if resp[0] == "OK":
            self.master = True
            return True
        return False

    def set_variable(self, client: NUTClient, variable_name: str, value: str) -> bool:
        """SET VAR on this UPS; True when upsd acknowledges with OK."""
        resp = client.send_command(f"SET VAR {self.name} {variable_name} {_quote(value)}")
        return resp[0] == "OK"

    def send_instant_command(self, client: NUTClient, command_name: str) -> bool:
        """Fire an instant command (INSTCMD); True on OK."""
        resp = client.send_command(f"INSTCMD {self.name} {command_name}")
        return resp[0] == "OK"

    def force_shutdown(self, client: NUTClient) -> bool:
        """Set the forced-shutdown (FSD) flag on this UPS.

        This needs the "upsmon master" role or the FSD action in
        upsd.users. Dependent systems see "FSD" in the UPS status and shut
        down as if the UPS were on battery with a low charge.

        FSD is a latch: once set it stays set until upsd is restarted or the
        UPS is removed from ups.conf and added back. Returns True only on
        the exact reply ``OK FSD-SET``.
        """
        resp = client.send_command(f"FSD {self.name}")
        if resp[0] == "OK FSD-SET":
            log.warning("forced shutdown flag set on %s", self.name)
            return True
        return False


def build_ups(client: NUTClient, name: str) -> UPS:
    """Create a UPS and populate every field from the server."""
    ups = UPS(name=name)
    ups.get_clients(client)
    ups.get_commands(client)
    ups.get_description(client)
    ups.get_number_of_logins(client)
    ups.get_variables(client)
    log.debug("built UPS %s: %d variables, %d commands", name, len(ups.variables), len(ups.commands))
    return ups
