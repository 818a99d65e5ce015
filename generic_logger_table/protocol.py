"""
Low-level envelope protocol for remote calls to logger table elements.

The protocol intentionally stays simple:

1. Every TCP frame starts with a 4-byte unsigned big-endian payload length.
2. The payload is UTF-8 JSON encoded.
3. Envelopes include ``protocol_version`` for compatibility checks.
4. Envelopes use the common shape:

   ``{"kind": "...", "correlation_id": "...", "payload": {...}, "protocol_version": 1}``

5. When configured, envelopes are authenticated with HMAC-SHA256 signatures.

A ``call`` envelope addresses an element parameter and carries registry
encoded messages plus an optional return address. A ``reply`` envelope echoes
the call's correlation id and carries the result messages.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import socket
import struct
from enum import Enum
from typing import Any

from .config import ElementId, ReturnAddress
from .exceptions import AuthenticationError, ProtocolDecodeError, ProtocolVersionError
from .messages import Message, MessageRegistry, RemoteCall

_HEADER = struct.Struct("!I")
_MAX_FRAME_BYTES = 8 * 1024 * 1024
PROTOCOL_VERSION = 1
_AUTH_ALGORITHM = "hmac-sha256"


class MessageKind(str, Enum):
    """
    Envelope categories exchanged between clients and element hosts.

    CALL
        Addressed request carrying one or more messages.
    REPLY
        Result messages for a call that asked for a reply.
    ERROR
        Host-side failure while handling a call.
    """

    CALL = "call"
    REPLY = "reply"
    ERROR = "error"


def _canonical_message_bytes(message: dict[str, Any]) -> bytes:
    """
    Return deterministic JSON bytes for envelope signing.

    The ``auth`` field is excluded to avoid self-referential signatures.
    """
    unsigned = {key: value for key, value in message.items() if key != "auth"}
    return json.dumps(unsigned, separators=(",", ":"), sort_keys=True).encode("utf-8")


def attach_authentication(message: dict[str, Any], security_token: str | None) -> dict[str, Any]:
    """
    Attach HMAC authentication metadata to an envelope.

    When ``security_token`` is ``None`` the envelope is returned unchanged.
    """
    if security_token is None:
        return message
    token = security_token.encode("utf-8")
    signature = hmac.new(token, _canonical_message_bytes(message), hashlib.sha256).hexdigest()
    with_auth = dict(message)
    with_auth["auth"] = {"alg": _AUTH_ALGORITHM, "sig": signature}
    return with_auth


def verify_authentication(message: dict[str, Any], security_token: str | None) -> bool:
    """
    Validate optional HMAC authentication metadata.

    Returns
    -------
    bool
        ``True`` when authentication is valid or security is disabled.
    """
    if security_token is None:
        return True
    auth = message.get("auth")
    if not isinstance(auth, dict):
        return False
    if auth.get("alg") != _AUTH_ALGORITHM:
        return False
    given = auth.get("sig")
    if not isinstance(given, str):
        return False
    token = security_token.encode("utf-8")
    expected = hmac.new(token, _canonical_message_bytes(message), hashlib.sha256).hexdigest()
    return hmac.compare_digest(given, expected)


def assert_protocol_compatible(
    message: dict[str, Any],
    *,
    min_supported_version: int = PROTOCOL_VERSION,
    max_supported_version: int = PROTOCOL_VERSION,
) -> None:
    """Raise if the envelope protocol version is outside the supported range."""
    version = message.get("protocol_version")
    if not isinstance(version, int) or not (
        min_supported_version <= version <= max_supported_version
    ):
        raise ProtocolVersionError(
            f"Incompatible protocol version {version!r}; expected "
            f"{min_supported_version!r}..{max_supported_version!r}."
        )


def assert_authenticated(message: dict[str, Any], security_token: str | None) -> None:
    """Raise when envelope authentication fails."""
    if not verify_authentication(message, security_token):
        raise AuthenticationError("Message authentication failed.")


def make_message(
    kind: MessageKind,
    payload: dict[str, Any],
    *,
    correlation_id: str,
    security_token: str | None = None,
) -> dict[str, Any]:
    """
    Build a protocol envelope.

    Parameters
    ----------
    kind:
        Envelope category.
    payload:
        Kind-specific body.
    correlation_id:
        Identifier shared by a call and its reply.
    """
    envelope: dict[str, Any] = {
        "kind": kind.value,
        "correlation_id": correlation_id,
        "protocol_version": PROTOCOL_VERSION,
        "payload": payload,
    }
    return attach_authentication(envelope, security_token)


def encode_call(
    call: RemoteCall,
    registry: MessageRegistry,
    *,
    security_token: str | None = None,
) -> dict[str, Any]:
    """Render a :class:`RemoteCall` as a signed ``call`` envelope."""
    payload: dict[str, Any] = {
        "target": {
            "agent_id": call.target.agent_id,
            "element_id": call.target.element_id,
            "parameter_id": call.parameter_id,
        },
        "messages": [registry.encode(message) for message in call.messages],
        "return_address": None if call.return_address is None else call.return_address.as_dict(),
    }
    return make_message(
        MessageKind.CALL,
        payload,
        correlation_id=call.correlation_id,
        security_token=security_token,
    )


def decode_call(envelope: dict[str, Any], registry: MessageRegistry) -> RemoteCall:
    """
    Rebuild a :class:`RemoteCall` from a ``call`` envelope.

    Raises
    ------
    ProtocolDecodeError
        If the envelope is not a well-formed call.
    """
    if envelope.get("kind") != MessageKind.CALL.value:
        raise ProtocolDecodeError(f"Expected a call envelope, got {envelope.get('kind')!r}.")
    payload = envelope.get("payload")
    if not isinstance(payload, dict):
        raise ProtocolDecodeError("Call payload must be a JSON object.")
    try:
        target = payload["target"]
        raw_return = payload.get("return_address")
        call = RemoteCall(
            target=ElementId(int(target["agent_id"]), int(target["element_id"])),
            messages=[registry.decode(item) for item in payload.get("messages", [])],
            return_address=None if raw_return is None else ReturnAddress.from_dict(raw_return),
            parameter_id=int(target["parameter_id"]),
            correlation_id=str(envelope["correlation_id"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ProtocolDecodeError(f"Malformed call envelope: {exc}") from exc
    return call


def make_reply(
    correlation_id: str,
    messages: list[Message],
    registry: MessageRegistry,
    *,
    security_token: str | None = None,
) -> dict[str, Any]:
    """Build a ``reply`` envelope carrying result messages."""
    return make_message(
        MessageKind.REPLY,
        {"messages": [registry.encode(message) for message in messages]},
        correlation_id=correlation_id,
        security_token=security_token,
    )


def make_error(
    correlation_id: str,
    reason: str,
    *,
    security_token: str | None = None,
) -> dict[str, Any]:
    """Build an ``error`` envelope."""
    return make_message(
        MessageKind.ERROR,
        {"reason": reason},
        correlation_id=correlation_id,
        security_token=security_token,
    )


def decode_reply(
    envelope: dict[str, Any],
    registry: MessageRegistry,
    *,
    correlation_id: str,
) -> list[Message]:
    """
    Extract result messages from a reply envelope.

    Raises
    ------
    ProtocolDecodeError
        If the envelope is an error, belongs to another call, or is malformed.
    """
    if envelope.get("correlation_id") != correlation_id:
        raise ProtocolDecodeError(
            f"Reply correlation id {envelope.get('correlation_id')!r} does not match "
            f"call {correlation_id!r}."
        )
    kind = envelope.get("kind")
    payload = envelope.get("payload")
    if not isinstance(payload, dict):
        raise ProtocolDecodeError("Reply payload must be a JSON object.")
    if kind == MessageKind.ERROR.value:
        raise ProtocolDecodeError(f"Element reported an error: {payload.get('reason')}")
    if kind != MessageKind.REPLY.value:
        raise ProtocolDecodeError(f"Expected a reply envelope, got {kind!r}.")
    raw_messages = payload.get("messages", [])
    if not isinstance(raw_messages, list):
        raise ProtocolDecodeError("Reply messages must be a JSON array.")
    return [registry.decode(item) for item in raw_messages]


def encode_frame(message: dict[str, Any]) -> bytes:
    """
    Encode an envelope into a length-prefixed binary frame.

    Returns
    -------
    bytes
        Byte sequence ready to be sent over a TCP socket.
    """
    body = json.dumps(message, separators=(",", ":"), sort_keys=True).encode("utf-8")
    if len(body) > _MAX_FRAME_BYTES:
        raise ProtocolDecodeError(
            f"Message size {len(body)} exceeds max frame {_MAX_FRAME_BYTES} bytes."
        )
    return _HEADER.pack(len(body)) + body


def decode_message(body: bytes | str) -> dict[str, Any]:
    """
    Decode a raw JSON payload into an envelope dictionary.

    Raises
    ------
    ProtocolDecodeError
        If payload is not valid UTF-8 JSON or not a dictionary.
    """
    try:
        text = body.decode("utf-8") if isinstance(body, bytes) else body
        parsed = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolDecodeError("Failed to decode JSON payload.") from exc
    if not isinstance(parsed, dict):
        raise ProtocolDecodeError("Decoded message must be a JSON object.")
    return parsed


def _read_exact(sock: socket.socket, total: int) -> bytes:
    """Read exactly ``total`` bytes or raise if the stream closes early."""
    chunks = bytearray()
    while len(chunks) < total:
        block = sock.recv(total - len(chunks))
        if not block:
            raise ProtocolDecodeError("Peer closed connection before full frame arrived.")
        chunks.extend(block)
    return bytes(chunks)


def recv_frame(sock: socket.socket) -> dict[str, Any]:
    """Read and decode a single frame from a TCP socket."""
    header = _read_exact(sock, _HEADER.size)
    (length,) = _HEADER.unpack(header)
    if length > _MAX_FRAME_BYTES:
        raise ProtocolDecodeError(
            f"Incoming frame {length} exceeds max frame {_MAX_FRAME_BYTES}."
        )
    body = _read_exact(sock, length)
    return decode_message(body)


def send_frame(sock: socket.socket, message: dict[str, Any]) -> None:
    """
    Encode and send a complete envelope frame over the socket.

    Uses ``sendall`` to guarantee full transmission before returning.
    """
    sock.sendall(encode_frame(message))
