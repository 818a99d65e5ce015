"""
Integration test for remote entry calls across a process boundary.

The test launches an element host process behind a TCP element server and
drives entry operations from this process over both the remote-call path and
a loopback TCP server hosted in-process.
"""

from __future__ import annotations

import json
import select
import socket
import subprocess
import sys
import time
import unittest
from pathlib import Path
from typing import Any

from generic_logger_table import (
    DatabaseKind,
    ElementHost,
    ElementId,
    ElementServer,
    LoggerTableConfig,
    NodeAddress,
    OperationFailedError,
    SecurityConfig,
    create_client,
)

REPO_ROOT = Path(__file__).resolve().parents[2]
ELEMENT_SCRIPT = Path(__file__).with_name("element_instance.py")


def reserve_local_port() -> int:
    """
    Reserve and release one ephemeral localhost port.

    Returns
    -------
    int
        Port number that is very likely to be free for immediate use.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def read_json_line(proc: subprocess.Popen[str], timeout_seconds: float) -> dict[str, Any]:
    """
    Read one JSON line from a subprocess stdout pipe with timeout.

    Raises
    ------
    TimeoutError
        If no line is received before the timeout.
    RuntimeError
        If the process exits before producing output.
    """
    if proc.stdout is None:
        raise RuntimeError("Process stdout pipe is not available.")
    deadline = time.monotonic() + timeout_seconds

    while time.monotonic() < deadline:
        remaining = max(0.0, deadline - time.monotonic())
        ready, _, _ = select.select([proc.stdout.fileno()], [], [], remaining)
        if not ready:
            continue
        line = proc.stdout.readline()
        if line == "":
            stderr = ""
            if proc.stderr is not None:
                stderr = proc.stderr.read()
            raise RuntimeError(f"Process exited before response. stderr={stderr!r}")
        return json.loads(line)
    raise TimeoutError("Timed out waiting for subprocess output.")


def start_element_process(
    *,
    port: int,
    elements: list[str],
    shared_token: str = "",
    database_kind: DatabaseKind = DatabaseKind.CASSANDRA,
) -> subprocess.Popen[str]:
    """
    Start one element host helper process and wait for ready event.
    """
    command = [
        sys.executable,
        str(ELEMENT_SCRIPT),
        "--port",
        str(port),
        "--database-kind",
        database_kind.value,
        "--shared-token",
        shared_token,
    ]
    for element in elements:
        command.extend(["--element", element])
    proc = subprocess.Popen(
        command,
        cwd=str(REPO_ROOT),
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        bufsize=1,
    )
    ready = read_json_line(proc, timeout_seconds=10.0)
    if ready.get("event") != "ready":
        raise RuntimeError(f"Unexpected startup response: {ready}")
    return proc


def send_command(
    proc: subprocess.Popen[str],
    payload: dict[str, Any],
    *,
    timeout_seconds: float = 5.0,
) -> Any:
    """
    Send one command to element helper and return response result.
    """
    if proc.stdin is None:
        raise RuntimeError("Process stdin pipe is not available.")
    proc.stdin.write(json.dumps(payload, separators=(",", ":"), sort_keys=True) + "\n")
    proc.stdin.flush()
    response = read_json_line(proc, timeout_seconds=timeout_seconds)
    if not response.get("ok", False):
        raise AssertionError(f"Element command failed: {response.get('error')}")
    return response.get("result")


def stop_element_process(proc: subprocess.Popen[str]) -> None:
    """
    Stop helper process gracefully and force kill only as a fallback.
    """
    if proc.poll() is not None:
        return
    try:
        send_command(proc, {"cmd": "stop"}, timeout_seconds=3.0)
        proc.wait(timeout=5.0)
    except Exception:
        proc.terminate()
        try:
            proc.wait(timeout=3.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait(timeout=3.0)


class RemoteElementProcessIntegrationTest(unittest.TestCase):
    """
    Validates entry semantics against an element hosted in another process.
    """

    def test_entry_operations_over_tcp(self) -> None:
        port = reserve_local_port()
        proc = start_element_process(
            port=port,
            elements=["12/345"],
            shared_token="it-secret",
            database_kind=DatabaseKind.CASSANDRA_CLUSTER,
        )
        self.addCleanup(stop_element_process, proc)

        client = create_client(
            LoggerTableConfig(
                element=ElementId(12, 345),
                timeout_seconds=3.0,
                database_kind=DatabaseKind.CASSANDRA_CLUSTER,
                security=SecurityConfig(shared_token="it-secret"),
            ),
            transport="tcp",
            agents={12: f"127.0.0.1:{port}"},
        )
        self.assertEqual(
            client.table_name,
            send_command(proc, {"cmd": "table", "element": "12/345"}),
        )

        self.assertTrue(client.try_add_entry("job-'1'", "queued").success)
        self.assertFalse(client.try_add_entry("job-'1'", "other").success)
        self.assertTrue(client.try_append_entry("job-'1'", " + started").success)
        self.assertEqual("queued + started", client.get_entry("job-'1'"))
        self.assertTrue(client.try_update_entry("job-2", "never").success)
        self.assertFalse(client.entry_exists("job-2"))

        # Fire-and-forget writes land once the element processed them.
        client.add_entry("job-3", "done")
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline and not client.entry_exists("job-3"):
            time.sleep(0.05)
        self.assertEqual(
            {"job-'1'": "queued + started", "job-3": "done"},
            send_command(proc, {"cmd": "rows", "element": "12/345"}),
        )

        client.remove_entry("job-3")
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline and client.entry_exists("job-3"):
            time.sleep(0.05)
        self.assertFalse(client.entry_exists("job-3"))

        stats = send_command(proc, {"cmd": "stats"})
        self.assertEqual(0, stats["auth_failures"])
        self.assertGreater(stats["replies"], 0)

    def test_wrong_token_is_rejected_by_element(self) -> None:
        port = reserve_local_port()
        proc = start_element_process(port=port, elements=["12/345"], shared_token="it-secret")
        self.addCleanup(stop_element_process, proc)

        client = create_client(
            LoggerTableConfig(
                element=ElementId(12, 345),
                timeout_seconds=3.0,
                security=SecurityConfig(shared_token="intruder"),
            ),
            transport="tcp",
            agents={12: f"127.0.0.1:{port}"},
        )
        result = client.try_get_entry("k")
        self.assertFalse(result.success)
        with self.assertRaises(OperationFailedError):
            client.get_entry("k")
        self.assertGreaterEqual(send_command(proc, {"cmd": "stats"})["auth_failures"], 2)


class LoopbackElementServerTest(unittest.TestCase):
    def test_unreachable_agent_becomes_failure_reason(self) -> None:
        client = create_client(
            LoggerTableConfig(element=ElementId(12, 345), timeout_seconds=1.0),
            transport="tcp",
            agents={12: f"127.0.0.1:{reserve_local_port()}"},
        )
        result = client.try_entry_exists("k")
        self.assertFalse(result.success)
        self.assertIn("TransportFailureError", result.reason)

    def test_slow_element_times_out(self) -> None:
        host = ElementHost()
        host.create_element(ElementId(12, 345))

        def slow_handler(envelope: dict[str, Any]) -> dict[str, Any] | None:
            time.sleep(1.0)
            return host.handle_envelope(envelope)

        server = ElementServer(
            bind=NodeAddress("127.0.0.1", reserve_local_port()),
            envelope_handler=slow_handler,
        )
        with server:
            client = create_client(
                LoggerTableConfig(element=ElementId(12, 345), timeout_seconds=0.2),
                transport="tcp",
                agents={12: server.address},
            )
            result = client.try_get_entry("k")
            self.assertFalse(result.success)
            self.assertIn("TransportTimeoutError", result.reason)


if __name__ == "__main__":
    unittest.main()
