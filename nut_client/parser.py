# NUT Client - Reply Parser
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides deterministic helpers for translating upsd reply lines into Python
# values, including variable value coercion and GET TYPE parsing.
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

"""Parsing helpers for upsd replies.

This module has no I/O. It turns the text of single reply lines into Python
values so the entity builder in `nut_client.ups` stays a sequence of
commands.

Key functions
- split_line(line) -> list[str]
    Whitespace tokeniser that keeps ``"quoted values"`` together and honours
    backslash escapes, e.g. ``VAR ups1 ups.mfr "APC \\"Back\\""``.

- coerce_value(raw, declared_type) -> (VariableValue, type, original_type)
    Apply the variable coercion rules (enabled/disabled booleans first, then
    numeric parsing for UNKNOWN and NUMBER variables).

- parse_type_response(tokens) -> (type, writeable, maximum_length)
    Interpret the tail of a ``TYPE <ups> <var> ...`` reply.

Notes and conventions
- Numeric parsing is strict: no surrounding whitespace, no digit separators,
  integers must fit in a signed 64-bit range and floats must be finite.
- A value that does not parse stays the raw string with its declared type.
"""
from __future__ import annotations

import logging
import math
import re
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple, Union

from .errors import NUTProtocolError

log = logging.getLogger(__name__)

# Declared wire types that are eligible for numeric coercion
TYPE_UNKNOWN = "UNKNOWN"
TYPE_NUMBER = "NUMBER"
TYPE_STRING = "STRING"
# Type tags assigned after a successful coercion
TYPE_INTEGER = "INTEGER"
TYPE_FLOAT = "FLOAT_64"

READ_WRITE_MARKER = "RW"
LENGTH_BOUNDED_PREFIX = "STRING:"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class ValueKind(Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"


@dataclass(frozen=True)
class VariableValue:
    """A variable value tagged with its kind.

    ``data`` is a ``str``, ``bool``, ``int`` or ``float`` matching ``kind``.
    """

    kind: ValueKind
    data: Union[str, bool, int, float]

    @classmethod
    def string(cls, value: str) -> "VariableValue":
        return cls(ValueKind.STRING, value)

    @classmethod
    def boolean(cls, value: bool) -> "VariableValue":
        return cls(ValueKind.BOOLEAN, value)

    @classmethod
    def integer(cls, value: int) -> "VariableValue":
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def float64(cls, value: float) -> "VariableValue":
        return cls(ValueKind.FLOAT, value)

    def __str__(self) -> str:
        if self.kind is ValueKind.BOOLEAN:
            return "enabled" if self.data else "disabled"
        return str(self.data)


def split_line(line: str) -> List[str]:
    """Split a reply line into tokens, unquoting ``"..."`` segments.

    Raises NUTProtocolError when a quote is left open.
    """
    lexer = shlex.shlex(line, posix=True)
    lexer.whitespace_split = True
    lexer.quotes = '"'
    lexer.escapedquotes = '"'
    lexer.commenters = ''
    try:
        return list(lexer)
    except ValueError as exc:
        raise NUTProtocolError(f"malformed reply line {line!r}: {exc}") from exc


def strip_prefix(tokens: List[str], prefix: List[str], line: str) -> List[str]:
    """Check that ``tokens`` starts with ``prefix`` and return the rest."""
    if tokens[:len(prefix)] != prefix:
        raise NUTProtocolError(f"unexpected reply {line!r}, expected it to start with {' '.join(prefix)!r}")
    return tokens[len(prefix):]


def parse_int64(raw: str) -> int:
    """Parse a base-10 signed 64-bit integer; raises ValueError otherwise."""
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"invalid integer syntax: {raw!r}")
    value = int(raw)
    if value < INT64_MIN or value > INT64_MAX:
        raise ValueError(f"integer out of range: {raw!r}")
    return value


def parse_float64(raw: str) -> float:
    """Parse a decimal floating point number; raises ValueError otherwise."""
    if not _FLOAT_RE.fullmatch(raw):
        raise ValueError(f"invalid float syntax: {raw!r}")
    value = float(raw)
    if math.isinf(value):
        raise ValueError(f"float out of range: {raw!r}")
    return value


def coerce_value(raw: str, declared_type: str) -> Tuple[VariableValue, str, str]:
    """Convert a raw variable value according to its declared type.

    Returns ``(value, type, original_type)``. ``original_type`` is empty
    unless a numeric coercion replaced the declared type.

    The enabled/disabled check runs before anything else, so a STRING
    variable whose text is ``enabled`` also becomes a boolean.
    """
    if raw == "enabled":
        return VariableValue.boolean(True), declared_type, ""
    if raw == "disabled":
        return VariableValue.boolean(False), declared_type, ""

    if declared_type in (TYPE_UNKNOWN, TYPE_NUMBER):
        dots = raw.count(".")
        try:
            if dots == 1:
                return VariableValue.float64(parse_float64(raw)), TYPE_FLOAT, declared_type
            if dots == 0:
                return VariableValue.integer(parse_int64(raw)), TYPE_INTEGER, declared_type
        except ValueError as exc:
            log.debug("keeping %r as string: %s", raw, exc)

    return VariableValue.string(raw), declared_type, ""


def parse_type_response(tokens: List[str]) -> Tuple[str, bool, int]:
    """Interpret the tokens following ``TYPE <ups> <var>``.

    ``["RW", "STRING:20"]`` -> ``("STRING", True, 20)``;
    ``["ENUM"]`` -> ``("ENUM", False, 0)``.
    """
    if not tokens:
        raise NUTProtocolError("TYPE reply carries no type")
    writeable = tokens[0] == READ_WRITE_MARKER
    if not writeable:
        return tokens[0], False, 0
    if len(tokens) < 2:
        raise NUTProtocolError("TYPE reply has RW marker but no type")
    var_type = tokens[1]
    maximum_length = 0
    if var_type.startswith(LENGTH_BOUNDED_PREFIX):
        var_type, _, length = var_type.partition(":")
        try:
            maximum_length = int(length)
        except ValueError as exc:
            raise NUTProtocolError(f"invalid maximum length {length!r} in TYPE reply") from exc
    return var_type, writeable, maximum_length
