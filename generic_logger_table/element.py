"""
Element-side runtime answering remote entry calls.

A :class:`LoggerTableElement` answers every request message by running the
direct-query strategy against its own table store, so the remote-call path
and the direct-query path share one set of semantics. An
:class:`ElementHost` owns the elements of one agent and turns inbound call
envelopes into reply envelopes; :class:`generic_logger_table.transport.ElementServer`
or the Redis worker put a host on the network.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from .config import (
    DEFAULT_KEYSPACE,
    INBOUND_PARAMETER_ID,
    DatabaseKind,
    ElementId,
    logger_table_name,
)
from .exceptions import AuthenticationError, LoggerTableError, OperationFailedError, ProtocolVersionError
from .memory import InMemoryTableStore
from .messages import (
    AddEntryRequest,
    AddEntryResult,
    AppendEntryRequest,
    AppendEntryResult,
    EntryExistsRequest,
    EntryExistsResult,
    GetEntryRequest,
    GetEntryResult,
    Message,
    MessageRegistry,
    RemoveEntryRequest,
    RemoveEntryResult,
    UpdateEntryRequest,
    UpdateEntryResult,
    default_registry,
)
from .protocol import (
    assert_authenticated,
    assert_protocol_compatible,
    decode_call,
    make_error,
    make_reply,
)
from .query import DirectQueryStrategy
from .transport_protocol import QueryTransport

_LOGGER = logging.getLogger(__name__)


class LoggerTableElement:
    """
    One logger table element processing request messages.

    Parameters
    ----------
    element:
        Identity of this element.
    store:
        Query transport holding the element's table; a fresh
        :class:`InMemoryTableStore` when omitted.
    database_kind, keyspace:
        Decide the table name, like on the client side.
    """

    def __init__(
        self,
        element: ElementId,
        store: QueryTransport | None = None,
        *,
        database_kind: DatabaseKind = DatabaseKind.CASSANDRA,
        keyspace: str = DEFAULT_KEYSPACE,
    ) -> None:
        self.element = element
        self.store = store if store is not None else InMemoryTableStore()
        self.table_name = logger_table_name(database_kind, element, keyspace=keyspace)
        self._queries = DirectQueryStrategy(self.store, self.table_name, element.agent_id)

    def process(self, message: Message) -> Message:
        """
        Execute one request and return its result message.

        Raises
        ------
        TypeError
            If ``message`` is not a request this element understands.
        OperationFailedError
            If the existence check itself failed; its result message has no
            field to carry a reason.
        """
        if isinstance(message, EntryExistsRequest):
            outcome = self._queries.entry_exists(message.id)
            if not outcome.success:
                raise OperationFailedError(outcome.reason)
            return EntryExistsResult(exists=bool(outcome.exists))
        if isinstance(message, GetEntryRequest):
            outcome = self._queries.get_entry(message.id)
            return GetEntryResult(success=outcome.success, reason=outcome.reason, data=outcome.data)
        if isinstance(message, AddEntryRequest):
            outcome = self._queries.add_entry(message.id, message.data, message.allow_overwrite)
            return AddEntryResult(success=outcome.success, reason=outcome.reason)
        if isinstance(message, AppendEntryRequest):
            outcome = self._queries.append_entry(message.id, message.data)
            return AppendEntryResult(success=outcome.success, reason=outcome.reason)
        if isinstance(message, UpdateEntryRequest):
            outcome = self._queries.update_entry(message.id, message.data)
            return UpdateEntryResult(success=outcome.success, reason=outcome.reason)
        if isinstance(message, RemoveEntryRequest):
            outcome = self._queries.remove_entry(message.id)
            return RemoveEntryResult(success=outcome.success, reason=outcome.reason)
        raise TypeError(f"Unsupported request type: {type(message).__name__}")


class ElementHost:
    """
    Agent-side container of logger table elements.

    Parameters
    ----------
    registry:
        Message types accepted on the wire.
    security_token:
        Shared token inbound envelopes must be signed with; replies are signed
        with it too.
    """

    def __init__(
        self,
        *,
        registry: MessageRegistry | None = None,
        security_token: str | None = None,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self._security_token = security_token
        self._elements: dict[int, LoggerTableElement] = {}
        self._elements_lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._stats: dict[str, int] = {
            "calls": 0,
            "replies": 0,
            "messages_processed": 0,
            "auth_failures": 0,
            "protocol_failures": 0,
            "dropped_calls": 0,
        }

    def add_element(self, element: LoggerTableElement) -> LoggerTableElement:
        """Host ``element`` under its element number."""
        with self._elements_lock:
            self._elements[element.element.element_id] = element
        return element

    def create_element(self, element: ElementId, **options: Any) -> LoggerTableElement:
        """Build a :class:`LoggerTableElement` with ``options`` and host it."""
        return self.add_element(LoggerTableElement(element, **options))

    def get_element(self, element_id: int) -> LoggerTableElement | None:
        with self._elements_lock:
            return self._elements.get(int(element_id))

    def element_ids(self) -> list[ElementId]:
        with self._elements_lock:
            return [item.element for item in self._elements.values()]

    def stats(self) -> dict[str, int]:
        """Return a copy of the runtime counters."""
        with self._stats_lock:
            return dict(self._stats)

    def _inc_stat(self, key: str, delta: int = 1) -> None:
        with self._stats_lock:
            self._stats[key] = self._stats.get(key, 0) + delta

    def handle_envelope(self, envelope: dict[str, Any]) -> dict[str, Any] | None:
        """
        Process one inbound call envelope.

        Returns
        -------
        dict[str, Any] | None
            Reply or error envelope, or ``None`` when the call did not ask for
            a reply.
        """
        correlation_id = str(envelope.get("correlation_id", ""))
        self._inc_stat("calls")
        try:
            assert_protocol_compatible(envelope)
        except ProtocolVersionError as exc:
            self._inc_stat("protocol_failures")
            self._inc_stat("dropped_calls")
            return make_error(correlation_id, str(exc), security_token=self._security_token)
        try:
            assert_authenticated(envelope, self._security_token)
        except AuthenticationError as exc:
            self._inc_stat("auth_failures")
            self._inc_stat("dropped_calls")
            return make_error(correlation_id, str(exc), security_token=self._security_token)

        try:
            call = decode_call(envelope, self.registry)
        except LoggerTableError as exc:
            self._inc_stat("protocol_failures")
            self._inc_stat("dropped_calls")
            _LOGGER.warning("Dropping malformed call correlation_id=%s reason=%s", correlation_id, exc)
            return make_error(correlation_id, str(exc), security_token=self._security_token)

        reason: str | None = None
        element = self.get_element(call.target.element_id)
        if element is None or element.element.agent_id != call.target.agent_id:
            reason = f"element {call.target} is not hosted here"
        elif call.parameter_id != INBOUND_PARAMETER_ID:
            reason = f"parameter {call.parameter_id} does not accept calls"

        results: list[Message] = []
        if reason is None and element is not None:
            for message in call.messages:
                try:
                    results.append(element.process(message))
                except (TypeError, OperationFailedError) as exc:
                    reason = str(exc)
                    break
                self._inc_stat("messages_processed")

        if reason is not None:
            self._inc_stat("dropped_calls")
            _LOGGER.warning(
                "Rejected call element=%s correlation_id=%s reason=%s",
                call.target,
                correlation_id,
                reason,
            )
            if not call.expects_reply:
                return None
            return make_error(correlation_id, reason, security_token=self._security_token)

        if not call.expects_reply:
            return None
        self._inc_stat("replies")
        return make_reply(correlation_id, results, self.registry, security_token=self._security_token)
