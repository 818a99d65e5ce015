"""
Message transports for remote calls to logger table elements.

The module provides:

* :class:`ElementServer` for hosting elements behind a TCP listener.
* :class:`TcpMessageTransport` for outbound calls over TCP.
* :class:`LocalMessageTransport` for in-process delivery to a handler.

Protocol framing and JSON encoding are delegated to :mod:`protocol`.
Outbound calls also enforce protocol-version compatibility, reply
correlation and optional shared-token authentication.
When configured, both server and client sockets are wrapped with TLS.
"""

from __future__ import annotations

import json
import logging
import socket
import socketserver
import ssl
import threading
from collections.abc import Mapping
from typing import Any, Callable

from .config import NodeAddress
from .exceptions import (
    LoggerTableError,
    ProtocolDecodeError,
    TransportFailureError,
    TransportTimeoutError,
)
from .messages import Message, MessageRegistry, RemoteCall
from .protocol import (
    assert_authenticated,
    assert_protocol_compatible,
    decode_message,
    decode_reply,
    encode_call,
    make_error,
    recv_frame,
    send_frame,
)

EnvelopeHandler = Callable[[dict[str, Any]], "dict[str, Any] | None"]
"""Receives a decoded call envelope; returns a reply envelope or ``None``."""

_LOGGER = logging.getLogger(__name__)


class _ThreadedTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """Thread-per-connection TCP server with safe address reuse."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        handler_cls: type[socketserver.BaseRequestHandler],
        envelope_handler: EnvelopeHandler,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        super().__init__(server_address, handler_cls)
        self.envelope_handler = envelope_handler
        self.ssl_context = ssl_context


class _ElementRequestHandler(socketserver.BaseRequestHandler):
    """Handle one inbound call frame and send at most one reply frame."""

    def handle(self) -> None:
        raw_sock = self.request
        if not isinstance(raw_sock, socket.socket):
            return
        response: dict[str, Any] | None
        active_sock: socket.socket | ssl.SSLSocket = raw_sock
        ssl_context = getattr(self.server, "ssl_context", None)
        incoming: dict[str, Any] = {}
        try:
            if ssl_context is not None:
                active_sock = ssl_context.wrap_socket(raw_sock, server_side=True)
            incoming = recv_frame(active_sock)
            response = self.server.envelope_handler(incoming)  # type: ignore[attr-defined]
        except Exception as exc:  # noqa: BLE001 - transport must not crash the server loop
            _LOGGER.warning("Element server failed to handle call reason=%s", exc)
            response = make_error(str(incoming.get("correlation_id", "")), str(exc))
        if response is None:
            return
        try:
            send_frame(active_sock, response)
        except OSError as exc:
            _LOGGER.warning(
                "Element server could not deliver reply correlation_id=%s reason=%s",
                response.get("correlation_id"),
                exc,
            )


class ElementServer:
    """
    Host-side TCP server that dispatches call envelopes to a callback.

    Parameters
    ----------
    bind:
        Host/port pair for the listening socket.
    envelope_handler:
        Callback that receives decoded call envelopes and returns a reply
        envelope, or ``None`` for fire-and-forget calls.
    """

    def __init__(
        self,
        *,
        bind: NodeAddress,
        envelope_handler: EnvelopeHandler,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self._bind = bind
        self._envelope_handler = envelope_handler
        self._ssl_context = ssl_context
        self._server: _ThreadedTCPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> NodeAddress:
        """Return the bound address (resolved port once started)."""
        if self._server is not None:
            host, port = self._server.server_address[:2]
            return NodeAddress(str(host), int(port))
        return self._bind

    def start(self) -> None:
        """Start the TCP listener and background serving thread."""
        if self._thread and self._thread.is_alive():
            return
        self._server = _ThreadedTCPServer(
            (self._bind.host, self._bind.port),
            _ElementRequestHandler,
            self._envelope_handler,
            self._ssl_context,
        )
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="logger-table-element-server",
            daemon=True,
        )
        self._thread.start()
        _LOGGER.debug("Element server listening host=%s port=%d", self._bind.host, self._bind.port)

    def stop(self) -> None:
        """Shutdown server and wait for the serving thread to exit."""
        if not self._server:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread:
            self._thread.join(timeout=1.0)
        self._server = None
        self._thread = None

    def __enter__(self) -> "ElementServer":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class TcpMessageTransport:
    """
    Deliver remote calls to element servers over TCP.

    Parameters
    ----------
    agents:
        Agent id to element server address routing table.
    security_token:
        Optional shared token for HMAC envelope authentication.
    connect_timeout_seconds:
        Socket timeout used by fire-and-forget sends.
    ssl_context:
        Optional client SSL context used to wrap TCP connections.
    server_hostname:
        Optional SNI/hostname value for TLS certificate validation.
    """

    def __init__(
        self,
        agents: Mapping[int, NodeAddress],
        *,
        security_token: str | None = None,
        connect_timeout_seconds: float = 2.0,
        ssl_context: ssl.SSLContext | None = None,
        server_hostname: str | None = None,
    ) -> None:
        self._agents = {int(agent_id): address for agent_id, address in agents.items()}
        self._security_token = security_token
        self._connect_timeout_seconds = connect_timeout_seconds
        self._ssl_context = ssl_context
        self._server_hostname = server_hostname

    def _route(self, agent_id: int) -> NodeAddress:
        try:
            return self._agents[int(agent_id)]
        except KeyError:
            raise TransportFailureError(f"No route to agent {agent_id}.") from None

    def _open(self, peer: NodeAddress, timeout_seconds: float) -> socket.socket | ssl.SSLSocket:
        raw_sock = socket.create_connection((peer.host, peer.port), timeout=timeout_seconds)
        raw_sock.settimeout(timeout_seconds)
        if self._ssl_context is None:
            return raw_sock
        active_sock = self._ssl_context.wrap_socket(
            raw_sock,
            server_hostname=self._server_hostname or peer.host,
        )
        active_sock.settimeout(timeout_seconds)
        return active_sock

    def send(self, call: RemoteCall, registry: MessageRegistry) -> None:
        """Write one call frame and close the connection without reading."""
        peer = self._route(call.target.agent_id)
        envelope = encode_call(call, registry, security_token=self._security_token)
        try:
            with self._open(peer, self._connect_timeout_seconds) as sock:
                send_frame(sock, envelope)
        except socket.timeout as exc:
            raise TransportTimeoutError(f"Timed out sending call to {peer.host}:{peer.port}.") from exc
        except OSError as exc:
            raise TransportFailureError(f"Cannot reach {peer.host}:{peer.port}: {exc}") from exc

    def send_and_wait(
        self,
        call: RemoteCall,
        registry: MessageRegistry,
        timeout_seconds: float,
    ) -> list[Message]:
        """
        Send one call to its element and wait for one reply.

        ``timeout_seconds`` bounds the connect, send and receive steps.
        """
        peer = self._route(call.target.agent_id)
        envelope = encode_call(call, registry, security_token=self._security_token)
        try:
            with self._open(peer, timeout_seconds) as sock:
                send_frame(sock, envelope)
                response = recv_frame(sock)
        except socket.timeout as exc:
            raise TransportTimeoutError(
                f"No reply from {peer.host}:{peer.port} within {timeout_seconds:.2f}s."
            ) from exc
        except OSError as exc:
            raise TransportFailureError(f"Cannot reach {peer.host}:{peer.port}: {exc}") from exc
        assert_protocol_compatible(response)
        assert_authenticated(response, self._security_token)
        return decode_reply(response, registry, correlation_id=call.correlation_id)


class LocalMessageTransport:
    """
    Deliver calls to an in-process envelope handler.

    Envelopes still pass through JSON so serialization problems surface the
    same way they would on a real wire.
    """

    def __init__(self, envelope_handler: EnvelopeHandler, *, security_token: str | None = None) -> None:
        self._envelope_handler = envelope_handler
        self._security_token = security_token

    def _deliver(self, call: RemoteCall, registry: MessageRegistry) -> dict[str, Any] | None:
        envelope = encode_call(call, registry, security_token=self._security_token)
        try:
            wire = json.dumps(envelope, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ProtocolDecodeError(f"Cannot serialize call: {exc}") from exc
        try:
            return self._envelope_handler(decode_message(wire))
        except LoggerTableError:
            raise
        except Exception as exc:  # noqa: BLE001 - handler faults surface as transport failures
            raise TransportFailureError(f"Local element failed: {exc}") from exc

    def send(self, call: RemoteCall, registry: MessageRegistry) -> None:
        self._deliver(call, registry)

    def send_and_wait(
        self,
        call: RemoteCall,
        registry: MessageRegistry,
        timeout_seconds: float,
    ) -> list[Message]:
        response = self._deliver(call, registry)
        if response is None:
            raise TransportTimeoutError(
                f"No reply for call {call.correlation_id} within {timeout_seconds:.2f}s."
            )
        assert_protocol_compatible(response)
        assert_authenticated(response, self._security_token)
        return decode_reply(response, registry, correlation_id=call.correlation_id)
