"""
Runnable demo for the Generic Logger Table client.

The demo hosts one logger table element and showcases every entry operation
over both paths:

* remote calls through the selected message transport (TCP, in-process or
  Redis)
* direct queries against the element's table store

Run from the repository root after installing the project:

    python example/src/glt_example/demo.py --transport tcp
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from typing import Any

from generic_logger_table import (
    ElementHost,
    ElementId,
    ElementServer,
    LoggerTableConfig,
    NodeAddress,
    OperationFailedError,
    SecurityConfig,
    create_client,
)
from generic_logger_table.exceptions import TransportNotAvailableError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="generic-logger-table example")
    parser.add_argument("--transport", choices=("tcp", "local", "redis"), default="tcp")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5721)
    parser.add_argument("--element", default="12/345", help="Element in agent/element notation")
    parser.add_argument("--shared-token", default="example-token")
    parser.add_argument("--redis-url", default="redis://127.0.0.1:6379/0")
    parser.add_argument("--redis-namespace", default=f"glt-example:{uuid.uuid4().hex[:8]}")
    parser.add_argument("--verbose", action="store_true")
    return parser


def _print_step(title: str, payload: Any) -> None:
    print(f"\n=== {title} ===")
    print(json.dumps(payload, indent=2, sort_keys=True))


def _summary(result) -> dict[str, Any]:
    return {"success": result.success, "reason": result.reason, "data": result.data}


def run_demo(args: argparse.Namespace) -> int:
    element_id = ElementId.parse(args.element)
    host = ElementHost(security_token=args.shared_token)
    element = host.create_element(element_id)
    config = LoggerTableConfig(
        element=element_id,
        timeout_seconds=3.0,
        security=SecurityConfig(shared_token=args.shared_token),
    )

    server: ElementServer | None = None
    worker = None
    transport_options: dict[str, Any] = {}
    if args.transport == "tcp":
        server = ElementServer(
            bind=NodeAddress(args.host, args.port),
            envelope_handler=host.handle_envelope,
        )
        server.start()
        transport_options = {"agents": {element_id.agent_id: server.address}}
    elif args.transport == "local":
        transport_options = {"host": host}
    else:
        from generic_logger_table_redis import RedisElementWorker, RedisTransportConfig

        redis_config = RedisTransportConfig(redis_url=args.redis_url, namespace=args.redis_namespace)
        worker = RedisElementWorker(host, config=redis_config)
        worker.start()
        transport_options = {"config": redis_config}

    try:
        client = create_client(
            config,
            transport=args.transport,
            query_transport=element.store,
            **transport_options,
        )
        _print_step("Client", {"table": client.table_name, "transport": args.transport})

        for remote in (True, False):
            path = "remote" if remote else "direct"
            entry_id = f"job-{path}"
            steps = {
                "add": _summary(client.try_add_entry(entry_id, "queued", remote=remote)),
                "add_again": _summary(client.try_add_entry(entry_id, "other", remote=remote)),
                "append": _summary(client.try_append_entry(entry_id, " -> it's running", remote=remote)),
                "get": _summary(client.try_get_entry(entry_id, remote=remote)),
                "update_absent": _summary(client.try_update_entry("nobody", "x", remote=remote)),
                "exists_absent": client.entry_exists("nobody", remote=remote),
                "remove": _summary(client.try_remove_entry(entry_id, remote=remote)),
                "remove_again": _summary(client.try_remove_entry(entry_id, remote=remote)),
            }
            _print_step(f"Entry Operations ({path})", steps)

        try:
            client.get_entry("missing")
        except OperationFailedError as exc:
            _print_step("Throwing Variant", {"error": str(exc)})

        _print_step("Element Host Stats", host.stats())
        return 0
    finally:
        if worker is not None:
            worker.stop()
        if server is not None:
            server.stop()


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return run_demo(args)
    except (ImportError, TransportNotAvailableError) as exc:
        print(f"Redis transport not available: {exc}", file=sys.stderr)
        print(
            "Install optional extra first: pip install 'generic-logger-table[redis]'",
            file=sys.stderr,
        )
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
