#!/usr/bin/env python3
# NUT Client - UPS Terminal Dashboard
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides a lightweight terminal-based dashboard displaying the UPS devices
# of a upsd server: description, logins, connected clients and variables.
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
NUT CLI Dashboard

Provides a lightweight terminal-based dashboard that displays:
- Server and network protocol versions
- For each UPS: description, number of logins, connected clients
- Every variable with its coerced value, type and writeability

The dashboard owns the reconnect policy: when a refresh fails the session is
closed and reopened with an exponential backoff (1s doubling up to 30s). The
library itself never retries.

Usage:
    nut-dashboard --host 192.168.1.10 --port 3493 --interval 5
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from datetime import datetime
from typing import List, Optional

from nut_client import NUTClient, NUTError, UPS, ValueKind, Variable

log = logging.getLogger(__name__)

MAX_BACKOFF = 30.0


def clear_screen():
    sys.stdout.write('\x1b[2J\x1b[H')


def format_variable(var: Variable) -> str:
    """One dashboard row: name, value, type and RW flag."""
    value = var.value
    if value.kind is ValueKind.BOOLEAN:
        text = "enabled" if value.data else "disabled"
    elif value.kind is ValueKind.FLOAT:
        text = f"{value.data:g}"
    elif value.kind is ValueKind.STRING and value.data == "":
        text = "-"
    else:
        text = str(value.data)
    var_type = var.type
    if var.original_type:
        var_type = f"{var.type} ({var.original_type})"
    flag = " RW" if var.writeable else ""
    return f"  {var.name:32} {text:24} {var_type}{flag}"


def render(client: NUTClient, ups_list: List[UPS], show_descriptions: bool = False) -> List[str]:
    lines = [
        "NUT Dashboard",
        "==============",
        f"Server: {client.host}:{client.port}  {client.version}",
        f"Protocol: {client.protocol_version}",
    ]
    if not ups_list:
        lines.append("\n(no UPS devices reported by the server)")
    for ups in ups_list:
        lines.append(f"\n[{ups.name}] {ups.description}")
        lines.append(f"  Logins: {ups.number_of_logins}  Clients: {', '.join(ups.clients) or '-'}")
        lines.append("  Variables:")
        for var in ups.variables:
            lines.append(format_variable(var))
            if show_descriptions and var.description:
                lines.append(f"      {var.description}")
        if ups.commands:
            lines.append(f"  Commands: {', '.join(cmd.name for cmd in ups.commands)}")
    return lines


def open_session(args) -> NUTClient:
    client = NUTClient(args.host, args.port, timeout=args.timeout, connect_timeout=args.timeout)
    client.connect()
    if args.username:
        if not client.authenticate(args.username, args.password or ""):
            log.warning("login as %s was not acknowledged", args.username)
    return client


def fetch(client: NUTClient, ups_name: Optional[str]) -> List[UPS]:
    if ups_name:
        return [client.get_ups(ups_name)]
    return client.get_ups_list()


def close_session(client: Optional[NUTClient]):
    """LOGOUT, unless a command is in flight; then only the socket is closed."""
    if client is None or not client.connected:
        return
    if client.busy:
        client.close()
        return
    try:
        client.disconnect()
    except NUTError as exc:
        log.debug("logout failed: %s", exc)


def main():
    parser = argparse.ArgumentParser(description="Terminal dashboard for a NUT (upsd) server")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", default=3493, type=int)
    parser.add_argument("--ups", default=None, help="Only show this UPS")
    parser.add_argument("--username", default=None)
    parser.add_argument("--password", default=None)
    parser.add_argument("--timeout", default=10.0, type=float, help="Socket timeout in seconds")
    parser.add_argument("--interval", default=5.0, type=float, help="Refresh interval in seconds")
    parser.add_argument("--descriptions", action="store_true", help="Show variable descriptions")
    parser.add_argument("--once", action="store_true", help="Print one snapshot and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging output")
    args = parser.parse_args()

    # configure logging early according to --verbose flag
    logging.basicConfig(level=(logging.DEBUG if args.verbose else logging.INFO))
    # Silence package logs by default (be chatty only with --verbose)
    pkg_log = logging.getLogger('nut_client')
    pkg_log.setLevel(logging.DEBUG if args.verbose else logging.WARNING)

    client: Optional[NUTClient] = None

    def handle_exit(signum=None, frame=None):
        close_session(client)
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    backoff = 1.0
    last_error: Optional[str] = None
    while True:
        try:
            if client is None or not client.connected:
                client = open_session(args)
            ups_list = fetch(client, args.ups)
            backoff = 1.0
            last_error = None
        except NUTError as exc:
            last_error = str(exc)
            log.debug("refresh failed: %s", exc)
            if client is not None:
                client.close()
            if args.once:
                print(f"error: {last_error}", file=sys.stderr)
                sys.exit(1)
            clear_screen()
            print("NUT Dashboard")
            print("==============")
            print(f"\nConnection: {last_error} (retrying in {backoff:.0f}s)")
            time.sleep(backoff)
            backoff = min(backoff * 2, MAX_BACKOFF)
            continue

        if not args.once:
            clear_screen()
        print("\n".join(render(client, ups_list, show_descriptions=args.descriptions)))
        if args.once:
            handle_exit()
        print(f"\nUpdated {datetime.now().strftime('%H:%M:%S')}  (Ctrl+C to quit)")
        time.sleep(args.interval)


if __name__ == "__main__":
    main()
