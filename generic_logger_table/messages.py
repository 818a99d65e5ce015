"""
Request and result messages exchanged with a logger table element.

Messages are plain, transport-agnostic value objects. They travel on the wire
as ``{"type": "<class name>", "fields": {...}}`` and are turned back into
concrete instances by a :class:`MessageRegistry`. The registry is an explicit
object handed to the transport on every call; nothing is registered
process-wide.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Iterable

from .config import INBOUND_PARAMETER_ID, ElementId, ReturnAddress
from .exceptions import ProtocolDecodeError, UnknownMessageTypeError


@dataclass(slots=True)
class Message:
    """Base class of every message known to a registry."""


# Requests -------------------------------------------------------------------


@dataclass(slots=True)
class AddEntryRequest(Message):
    """Add an entry, optionally overwriting an existing one with the same id."""

    id: str = ""
    data: str = ""
    allow_overwrite: bool = False


@dataclass(slots=True)
class AppendEntryRequest(Message):
    """Append ``data`` to the data of an existing entry."""

    id: str = ""
    data: str = ""


@dataclass(slots=True)
class GetEntryRequest(Message):
    id: str = ""


@dataclass(slots=True)
class RemoveEntryRequest(Message):
    id: str = ""


@dataclass(slots=True)
class UpdateEntryRequest(Message):
    """Overwrite the data of an existing entry; no-op when it is absent."""

    id: str = ""
    data: str = ""


@dataclass(slots=True)
class EntryExistsRequest(Message):
    id: str = ""


# Results --------------------------------------------------------------------


@dataclass(slots=True)
class AddEntryResult(Message):
    success: bool = False
    reason: str = ""


@dataclass(slots=True)
class AppendEntryResult(Message):
    success: bool = False
    reason: str = ""


@dataclass(slots=True)
class GetEntryResult(Message):
    """Result of a get; ``data`` is only meaningful when ``success`` is true."""

    success: bool = False
    reason: str = ""
    data: str | None = None


@dataclass(slots=True)
class RemoveEntryResult(Message):
    success: bool = False
    reason: str = ""


@dataclass(slots=True)
class UpdateEntryResult(Message):
    success: bool = False
    reason: str = ""


@dataclass(slots=True)
class EntryExistsResult(Message):
    exists: bool = False


REQUEST_TYPES: tuple[type[Message], ...] = (
    AddEntryRequest,
    AppendEntryRequest,
    GetEntryRequest,
    RemoveEntryRequest,
    UpdateEntryRequest,
    EntryExistsRequest,
)

RESULT_TYPES: tuple[type[Message], ...] = (
    AddEntryResult,
    AppendEntryResult,
    GetEntryResult,
    RemoveEntryResult,
    UpdateEntryResult,
    EntryExistsResult,
)


class MessageRegistry:
    """
    Maps wire type names to concrete message classes.

    Parameters
    ----------
    message_types:
        Message classes this registry can encode and decode.
    """

    def __init__(self, message_types: Iterable[type[Message]] = ()) -> None:
        self._types: dict[str, type[Message]] = {}
        for message_type in message_types:
            self.register(message_type)

    def register(self, message_type: type[Message]) -> None:
        """Make ``message_type`` known under its class name."""
        if not (isinstance(message_type, type) and issubclass(message_type, Message)):
            raise TypeError(f"{message_type!r} is not a Message subclass.")
        self._types[message_type.__name__] = message_type

    def __contains__(self, message_type: object) -> bool:
        if isinstance(message_type, str):
            return message_type in self._types
        return isinstance(message_type, type) and self._types.get(message_type.__name__) is message_type

    def __len__(self) -> int:
        return len(self._types)

    def encode(self, message: Message) -> dict[str, Any]:
        """
        Convert a message into a JSON-friendly dictionary.

        Raises
        ------
        UnknownMessageTypeError
            If the message type was never registered.
        """
        if type(message) not in self:
            raise UnknownMessageTypeError(
                f"Message type {type(message).__name__!r} is not registered."
            )
        return {"type": type(message).__name__, "fields": asdict(message)}

    def decode(self, payload: Any) -> Message:
        """
        Build a concrete message from a dictionary produced by :meth:`encode`.

        Unknown field names are ignored so newer senders stay readable.
        """
        if not isinstance(payload, dict):
            raise ProtocolDecodeError("Encoded message must be a JSON object.")
        type_name = payload.get("type")
        message_type = self._types.get(type_name) if isinstance(type_name, str) else None
        if message_type is None:
            raise UnknownMessageTypeError(f"Unknown message type {type_name!r}.")
        raw_fields = payload.get("fields", {})
        if not isinstance(raw_fields, dict):
            raise ProtocolDecodeError(f"Fields of {type_name} must be a JSON object.")
        known = {item.name for item in fields(message_type)}
        try:
            return message_type(**{key: value for key, value in raw_fields.items() if key in known})
        except TypeError as exc:
            raise ProtocolDecodeError(f"Cannot build {type_name}: {exc}") from exc


def default_registry() -> MessageRegistry:
    """Return a new registry holding every logger table request and result."""
    return MessageRegistry(REQUEST_TYPES + RESULT_TYPES)


@dataclass(slots=True)
class RemoteCall:
    """
    One addressed call carrying messages to an element parameter.

    Parameters
    ----------
    target:
        Element that must process the messages.
    messages:
        Messages to deliver, in order.
    return_address:
        Where replies go. ``None`` marks a fire-and-forget call.
    parameter_id:
        Inbound channel on the target element.
    correlation_id:
        Identifier echoed by the reply so it can be matched to this call.
    """

    target: ElementId
    messages: list[Message] = field(default_factory=list)
    return_address: ReturnAddress | None = None
    parameter_id: int = INBOUND_PARAMETER_ID
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def expects_reply(self) -> bool:
        return self.return_address is not None
