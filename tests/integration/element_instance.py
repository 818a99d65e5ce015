"""
Standalone element host process used by integration tests.

The script hosts logger table elements behind one
:class:`generic_logger_table.transport.ElementServer`, prints a single JSON
``ready`` event to stdout, and then accepts line-delimited JSON commands
through stdin.

Protocol
--------
Input command shape::

    {"cmd": "<name>", "...": "..."}

Output response shape::

    {"ok": true, "result": ...}
    {"ok": false, "error": "..."}
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Ensure local package imports work when this script is launched via subprocess.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from generic_logger_table import (  # noqa: E402
    DatabaseKind,
    ElementHost,
    ElementId,
    ElementServer,
    NodeAddress,
    unescape,
)


def emit(payload: dict[str, Any]) -> None:
    """Emit one JSON line to stdout and flush immediately."""
    print(json.dumps(payload, separators=(",", ":"), sort_keys=True), flush=True)


def build_parser() -> argparse.ArgumentParser:
    """Create and configure CLI argument parser for element process startup."""
    parser = argparse.ArgumentParser(description="Integration helper element host process")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument("--port", type=int, required=True, help="Bind port")
    parser.add_argument(
        "--element",
        action="append",
        required=True,
        help="Hosted element in agent/element notation; repeatable",
    )
    parser.add_argument(
        "--database-kind",
        default=DatabaseKind.CASSANDRA.value,
        choices=[item.value for item in DatabaseKind],
        help="Database kind deciding the element table names",
    )
    parser.add_argument(
        "--shared-token",
        default="",
        help="Optional shared token for HMAC message authentication",
    )
    return parser


def handle_command(*, host: ElementHost, command: dict[str, Any]) -> tuple[bool, Any]:
    """
    Execute one JSON command against the running element host.

    Returns
    -------
    tuple[bool, Any]
        Pair of ``(ok, result_or_error_message)``.
    """
    cmd = str(command.get("cmd", "")).strip()
    if not cmd:
        return False, "Missing command name in 'cmd' field."

    if cmd == "ping":
        return True, "pong"
    if cmd == "stats":
        return True, host.stats()
    if cmd == "rows":
        element = host.get_element(ElementId.parse(str(command["element"])).element_id)
        if element is None:
            return False, f"Element {command['element']!r} is not hosted"
        rows = element.store.rows(element.table_name, element.element.agent_id)  # type: ignore[attr-defined]
        return True, {unescape(key): unescape(row.dt) for key, row in rows.items()}
    if cmd == "table":
        element = host.get_element(ElementId.parse(str(command["element"])).element_id)
        if element is None:
            return False, f"Element {command['element']!r} is not hosted"
        return True, element.table_name

    if cmd == "stop":
        return True, "__stop__"
    return False, f"Unknown command {cmd!r}"


def run() -> int:
    """Run helper process lifecycle and command loop."""
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    try:
        host = ElementHost(security_token=args.shared_token or None)
        for raw in args.element:
            host.create_element(ElementId.parse(raw), database_kind=DatabaseKind(args.database_kind))
        server = ElementServer(
            bind=NodeAddress(args.host, args.port),
            envelope_handler=host.handle_envelope,
        )
        server.start()
    except Exception as exc:  # noqa: BLE001 - entrypoint should return clear startup error
        emit({"ok": False, "error": f"startup failed: {exc}"})
        return 1

    emit({"event": "ready", "port": args.port})

    try:
        for raw_line in sys.stdin:
            line = raw_line.strip()
            if not line:
                continue
            try:
                command = json.loads(line)
                if not isinstance(command, dict):
                    raise ValueError("Command must be a JSON object.")
                ok, result = handle_command(host=host, command=command)
                if ok and result == "__stop__":
                    emit({"ok": True, "result": None})
                    break
                if ok:
                    emit({"ok": True, "result": result})
                else:
                    emit({"ok": False, "error": result})
            except Exception as exc:  # noqa: BLE001 - command loop must stay alive for tests
                emit({"ok": False, "error": str(exc)})
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
