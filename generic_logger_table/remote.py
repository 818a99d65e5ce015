"""
Remote-call strategy: entry operations as addressed element messages.

Each operation exchanges exactly one request and, when an outcome is needed,
exactly one reply. Values travel as structured JSON fields, so no query
escaping is involved on this path.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from .config import ElementId, ReturnAddress
from .exceptions import LoggerTableError, ProtocolDecodeError, ProtocolMismatchError, TransportFailureError
from .messages import (
    AddEntryRequest,
    AppendEntryRequest,
    EntryExistsRequest,
    EntryExistsResult,
    GetEntryRequest,
    GetEntryResult,
    Message,
    MessageRegistry,
    RemoteCall,
    RemoveEntryRequest,
    UpdateEntryRequest,
)
from .strategy import Operation, OperationResult
from .transport_protocol import MessageTransport

_LOGGER = logging.getLogger(__name__)
_R = TypeVar("_R", bound=Message)


class RemoteCallStrategy:
    """
    Perform entry operations by messaging a logger table element.

    Parameters
    ----------
    transport:
        Delivers calls to the element.
    element:
        Target element.
    return_address:
        Caller identity and return channel attached to calls expecting a reply.
    registry:
        Message types the transport may encode and decode.
    timeout:
        Returns the current reply timeout in seconds; read on every call.
    """

    def __init__(
        self,
        transport: MessageTransport,
        element: ElementId,
        return_address: ReturnAddress,
        registry: MessageRegistry,
        timeout: Callable[[], float],
    ) -> None:
        self._transport = transport
        self._element = element
        self._return_address = return_address
        self._registry = registry
        self._timeout = timeout

    def _exchange(self, operation: Operation, request: Message, expected: type[_R]) -> _R | OperationResult:
        """Send ``request`` and return the typed reply, or a failed result."""
        call = RemoteCall(
            target=self._element,
            messages=[request],
            return_address=self._return_address,
        )
        timeout_seconds = self._timeout()
        _LOGGER.debug(
            "Remote call operation=%s element=%s correlation_id=%s timeout=%.2f",
            operation.value,
            self._element,
            call.correlation_id,
            timeout_seconds,
        )
        try:
            replies = self._transport.send_and_wait(call, self._registry, timeout_seconds)
            if not replies:
                raise ProtocolDecodeError("Element returned an empty reply.")
            reply = replies[0]
            if not isinstance(reply, expected):
                raise ProtocolMismatchError(expected.__name__, type(reply).__name__)
        except Exception as exc:  # noqa: BLE001 - every transport fault becomes a failure reason
            return self._failure(operation, call, exc)
        return reply

    def _post(self, operation: Operation, request: Message) -> OperationResult:
        """Send ``request`` without a return address and without waiting."""
        call = RemoteCall(target=self._element, messages=[request])
        _LOGGER.debug(
            "Remote send operation=%s element=%s correlation_id=%s",
            operation.value,
            self._element,
            call.correlation_id,
        )
        try:
            self._transport.send(call, self._registry)
        except Exception as exc:  # noqa: BLE001 - every transport fault becomes a failure reason
            return self._failure(operation, call, exc)
        return OperationResult.ok()

    def _failure(self, operation: Operation, call: RemoteCall, exc: Exception) -> OperationResult:
        error = exc if isinstance(exc, LoggerTableError) else TransportFailureError(str(exc))
        if error is not exc:
            error.__cause__ = exc
        _LOGGER.warning(
            "Remote call failed operation=%s element=%s correlation_id=%s reason=%s",
            operation.value,
            self._element,
            call.correlation_id,
            exc,
        )
        return OperationResult.failed(f"{type(exc).__name__}: {exc}", error)

    def _write(self, operation: Operation, request: Message, require_response: bool) -> OperationResult:
        if not require_response:
            return self._post(operation, request)
        reply = self._exchange(operation, request, operation.result_type)
        if isinstance(reply, OperationResult):
            return reply
        if reply.success:  # type: ignore[attr-defined]
            return OperationResult.ok()
        return OperationResult.failed(reply.reason)  # type: ignore[attr-defined]

    def entry_exists(self, entry_id: str) -> OperationResult:
        reply = self._exchange(Operation.EXISTS, EntryExistsRequest(id=entry_id), EntryExistsResult)
        if isinstance(reply, OperationResult):
            return reply
        return OperationResult.ok(exists=bool(reply.exists))

    def get_entry(self, entry_id: str) -> OperationResult:
        reply = self._exchange(Operation.GET, GetEntryRequest(id=entry_id), GetEntryResult)
        if isinstance(reply, OperationResult):
            return reply
        if not reply.success:
            return OperationResult.failed(reply.reason)
        return OperationResult.ok(data=reply.data)

    def add_entry(
        self,
        entry_id: str,
        data: str,
        allow_overwrite: bool = False,
        *,
        require_response: bool = True,
    ) -> OperationResult:
        request = AddEntryRequest(id=entry_id, data=data, allow_overwrite=allow_overwrite)
        return self._write(Operation.ADD, request, require_response)

    def append_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        return self._write(Operation.APPEND, AppendEntryRequest(id=entry_id, data=data), require_response)

    def update_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        return self._write(Operation.UPDATE, UpdateEntryRequest(id=entry_id, data=data), require_response)

    def remove_entry(self, entry_id: str, *, require_response: bool = True) -> OperationResult:
        return self._write(Operation.REMOVE, RemoveEntryRequest(id=entry_id), require_response)
