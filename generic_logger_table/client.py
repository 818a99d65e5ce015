"""
Client facade for one Generic Logger Table element.

:class:`LoggerTableClient` exposes one operation surface and routes each call
to the remote-call or direct-query strategy. Every operation comes in two
flavours:

* a throwing variant (``get_entry``) that raises
  :class:`~generic_logger_table.exceptions.OperationFailedError`
* a ``try_*`` variant returning an
  :class:`~generic_logger_table.strategy.OperationResult`

Both flavours raise :class:`~generic_logger_table.exceptions.InvalidArgumentError`
for a missing id or data before anything is sent.

On the remote path, ``add_entry``, ``append_entry``, ``update_entry`` and
``remove_entry`` are fire-and-forget: they return once the transport accepted
the message and do not report the element's outcome. Use the ``try_*``
variants to learn the outcome.
"""

from __future__ import annotations

import logging

from .config import PROTOCOL_NAME, DatabaseKind, LoggerTableConfig, logger_table_name
from .exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    OperationFailedError,
    ProtocolMismatchError,
)
from .messages import MessageRegistry, default_registry
from .query import DirectQueryStrategy
from .remote import RemoteCallStrategy
from .strategy import EntryStrategy, OperationResult
from .transport_protocol import EndpointResolver, MessageTransport, QueryTransport

_LOGGER = logging.getLogger(__name__)


def _validate_id(entry_id: object) -> str:
    if not isinstance(entry_id, str) or not entry_id:
        raise InvalidArgumentError("Entry id must be a non-empty string.")
    return entry_id


def _validate_data(data: object) -> str:
    if data is None:
        raise InvalidArgumentError("Entry data must not be None.")
    if not isinstance(data, str):
        raise InvalidArgumentError(f"Entry data must be a string, got {type(data).__name__}.")
    return data


def _raise_on_failure(result: OperationResult, action: str) -> OperationResult:
    if result.success:
        return result
    if isinstance(result.error, ProtocolMismatchError):
        raise result.error
    raise OperationFailedError(f"{action} due to {result.reason}") from result.error


class LoggerTableClient:
    """
    Keyed entry access to a Generic Logger Table element.

    Parameters
    ----------
    config:
        Target element, timeout and naming settings.
    message_transport:
        Transport used by the remote-call strategy (``remote=True``).
    query_transport:
        Transport used by the direct-query strategy (``remote=False``).
    resolver:
        Asked once whether the element runs the logger table protocol and,
        when ``config.database_kind`` is not set, for the database kind.
    registry:
        Message types handed to the message transport; defaults to every
        logger table request and result.
    """

    def __init__(
        self,
        config: LoggerTableConfig,
        *,
        message_transport: MessageTransport | None = None,
        query_transport: QueryTransport | None = None,
        resolver: EndpointResolver | None = None,
        registry: MessageRegistry | None = None,
    ) -> None:
        if message_transport is None and query_transport is None:
            raise ConfigurationError("At least one of message_transport or query_transport is required.")
        self.config = config
        self._timeout_seconds = float(config.timeout_seconds)
        self.registry = registry if registry is not None else default_registry()

        if resolver is not None:
            protocol = resolver.protocol_name(config.element)
            if protocol != PROTOCOL_NAME:
                raise ConfigurationError(
                    f"Element {config.element} runs protocol {protocol!r}, expected {PROTOCOL_NAME!r}."
                )

        database_kind = config.database_kind
        if database_kind is None:
            database_kind = (
                resolver.database_kind(config.element.agent_id)
                if resolver is not None
                else DatabaseKind.CASSANDRA
            )
        self._table_name = logger_table_name(database_kind, config.element, keyspace=config.keyspace)

        self._remote: RemoteCallStrategy | None = None
        if message_transport is not None:
            self._remote = RemoteCallStrategy(
                message_transport,
                config.element,
                config.return_address,
                self.registry,
                lambda: self._timeout_seconds,
            )
        self._direct: DirectQueryStrategy | None = None
        if query_transport is not None:
            self._direct = DirectQueryStrategy(query_transport, self._table_name, config.element.agent_id)
        _LOGGER.debug(
            "Logger table client ready element=%s table=%s remote=%s direct=%s",
            config.element,
            self._table_name,
            self._remote is not None,
            self._direct is not None,
        )

    @property
    def table_name(self) -> str:
        """Logger table name, derived once at construction."""
        return self._table_name

    @property
    def timeout(self) -> float:
        """Maximum time in seconds a remote call waits for its reply."""
        return self._timeout_seconds

    @timeout.setter
    def timeout(self, value: float) -> None:
        if value <= 0:
            raise ConfigurationError("Timeout must be > 0 seconds.")
        self._timeout_seconds = float(value)

    def _strategy(self, remote: bool) -> EntryStrategy:
        strategy: EntryStrategy | None = self._remote if remote else self._direct
        if strategy is None:
            path = "remote-call" if remote else "direct-query"
            raise ConfigurationError(f"No transport configured for the {path} path.")
        return strategy

    # ------------------------------------------------------------------ #
    # Existence
    # ------------------------------------------------------------------ #

    def try_entry_exists(self, entry_id: str, *, remote: bool = True) -> OperationResult:
        """Check whether an entry exists; ``result.exists`` holds the answer."""
        return self._strategy(remote).entry_exists(_validate_id(entry_id))

    def entry_exists(self, entry_id: str, *, remote: bool = True) -> bool:
        """Return whether ``entry_id`` exists in the logger table."""
        result = _raise_on_failure(
            self.try_entry_exists(entry_id, remote=remote),
            f"Unable to check entry with id {entry_id}",
        )
        return bool(result.exists)

    # ------------------------------------------------------------------ #
    # Get
    # ------------------------------------------------------------------ #

    def try_get_entry(self, entry_id: str, *, remote: bool = True) -> OperationResult:
        """
        Retrieve an entry without raising for ordinary failures.

        ``result.data`` is ``None`` whenever ``result.success`` is false.
        """
        result = self._strategy(remote).get_entry(_validate_id(entry_id))
        if not result.success and result.data is not None:
            return OperationResult.failed(result.reason, result.error)
        return result

    def get_entry(self, entry_id: str, *, remote: bool = True) -> str:
        """Return the data of ``entry_id``."""
        result = _raise_on_failure(
            self.try_get_entry(entry_id, remote=remote),
            f"Unable to get entry with id {entry_id}",
        )
        return result.data if result.data is not None else ""

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def try_add_entry(
        self,
        entry_id: str,
        data: str,
        allow_overwrite: bool = False,
        *,
        remote: bool = True,
    ) -> OperationResult:
        """Add an entry; fails when the id exists and overwriting is disallowed."""
        return self._strategy(remote).add_entry(
            _validate_id(entry_id),
            _validate_data(data),
            bool(allow_overwrite),
        )

    def add_entry(
        self,
        entry_id: str,
        data: str,
        allow_overwrite: bool = False,
        *,
        remote: bool = True,
    ) -> None:
        """Add an entry to the logger table."""
        result = self._strategy(remote).add_entry(
            _validate_id(entry_id),
            _validate_data(data),
            bool(allow_overwrite),
            require_response=False,
        )
        _raise_on_failure(result, f"Unable to add entry with id {entry_id}")

    def try_append_entry(self, entry_id: str, data: str, *, remote: bool = True) -> OperationResult:
        """Append ``data`` to an existing entry."""
        return self._strategy(remote).append_entry(_validate_id(entry_id), _validate_data(data))

    def append_entry(self, entry_id: str, data: str, *, remote: bool = True) -> None:
        """Append ``data`` to an existing entry."""
        result = self._strategy(remote).append_entry(
            _validate_id(entry_id),
            _validate_data(data),
            require_response=False,
        )
        _raise_on_failure(result, f"Unable to append to entry with id {entry_id}")

    def try_update_entry(self, entry_id: str, data: str, *, remote: bool = True) -> OperationResult:
        """
        Overwrite the data of an existing entry.

        An absent entry is left absent and still reported as success.
        """
        return self._strategy(remote).update_entry(_validate_id(entry_id), _validate_data(data))

    def update_entry(self, entry_id: str, data: str, *, remote: bool = True) -> None:
        """Overwrite the data of an existing entry."""
        result = self._strategy(remote).update_entry(
            _validate_id(entry_id),
            _validate_data(data),
            require_response=False,
        )
        _raise_on_failure(result, f"Unable to update entry with id {entry_id}")

    def try_remove_entry(self, entry_id: str, *, remote: bool = True) -> OperationResult:
        """Remove an entry; removing an absent entry succeeds."""
        return self._strategy(remote).remove_entry(_validate_id(entry_id))

    def remove_entry(self, entry_id: str, *, remote: bool = True) -> None:
        """Remove an entry from the logger table."""
        result = self._strategy(remote).remove_entry(_validate_id(entry_id), require_response=False)
        _raise_on_failure(result, f"Unable to remove entry with id {entry_id}")
