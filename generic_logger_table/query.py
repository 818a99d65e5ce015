"""
Direct-query strategy: entry operations rendered as textual table queries.

Every string literal embedded in a query passes through
:func:`generic_logger_table.escaping.escape`, and every value read back passes
through :func:`generic_logger_table.escaping.unescape`. The store-level
conditional clauses (``IF NOT EXISTS`` / ``IF EXISTS``) are the only
compare-and-swap available; the existence probe before a conditional insert
merely short-circuits the common case.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from .escaping import escape, unescape
from .exceptions import LoggerTableError, TransportFailureError
from .strategy import Operation, OperationResult
from .transport_protocol import QueryResponse, QueryTransport

TIMESTAMP_FORMAT_VERSION = 1
"""Version of the timestamp text written to the ``ts`` column."""

_LOGGER = logging.getLogger(__name__)


def format_timestamp(moment: datetime) -> str:
    """
    Render ``moment`` as UTC ISO-8601 with milliseconds, e.g. ``2026-10-18T09:15:02.123Z``.

    Naive datetimes are taken to be UTC. The output only uses numeric fields,
    so it does not depend on the runtime locale.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _literal(value: str) -> str:
    return f"'{escape(value)}'"


def render_exists(table: str, entry_id: str) -> str:
    return f"SELECT id FROM {table} WHERE id={_literal(entry_id)} LIMIT 1"


def render_get(table: str, entry_id: str) -> str:
    return f"SELECT dt FROM {table} WHERE id={_literal(entry_id)} LIMIT 1"


def render_insert(table: str, entry_id: str, data: str, timestamp: str, *, if_not_exists: bool) -> str:
    query = (
        f"INSERT INTO {table} (id, dt, ts) VALUES "
        f"({_literal(entry_id)}, {_literal(data)}, {_literal(timestamp)})"
    )
    if if_not_exists:
        query += " IF NOT EXISTS"
    return query


def render_update(table: str, entry_id: str, data: str) -> str:
    return f"UPDATE {table} SET dt={_literal(data)} WHERE id={_literal(entry_id)} IF EXISTS"


def render_delete(table: str, entry_id: str) -> str:
    return f"DELETE FROM {table} WHERE id={_literal(entry_id)}"


def _not_applied(response: QueryResponse) -> bool:
    """Return true when a conditional statement reports it was not applied."""
    return bool(response.values) and response.values[0].strip().lower() == "false"


class DirectQueryStrategy:
    """
    Perform entry operations directly against the logger table.

    Parameters
    ----------
    query_transport:
        Executes query text against the store.
    table_name:
        Fully qualified logger table name.
    agent_id:
        Routing identifier handed to the query transport.
    clock:
        Source of write timestamps.
    """

    def __init__(
        self,
        query_transport: QueryTransport,
        table_name: str,
        agent_id: int,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._transport = query_transport
        self._table = table_name
        self._agent_id = agent_id
        self._clock = clock

    @property
    def table_name(self) -> str:
        return self._table

    def _execute(self, operation: Operation, query: str) -> QueryResponse:
        _LOGGER.debug(
            "Direct query operation=%s table=%s agent_id=%s",
            operation.value,
            self._table,
            self._agent_id,
        )
        try:
            return self._transport.execute(query, self._agent_id)
        except LoggerTableError:
            raise
        except Exception as exc:  # noqa: BLE001 - any query transport fault is a transport failure
            raise TransportFailureError(f"Query transport failed: {exc}") from exc

    def _run(self, operation: Operation, query: str) -> QueryResponse | OperationResult:
        try:
            response = self._execute(operation, query)
        except LoggerTableError as exc:
            _LOGGER.warning("Direct query failed operation=%s reason=%s", operation.value, exc)
            return OperationResult.failed(str(exc), exc)
        if response.error:
            return OperationResult.failed(response.error)
        return response

    def entry_exists(self, entry_id: str) -> OperationResult:
        outcome = self._run(Operation.EXISTS, render_exists(self._table, entry_id))
        if isinstance(outcome, OperationResult):
            return outcome
        return OperationResult.ok(exists=bool(outcome.values))

    def get_entry(self, entry_id: str) -> OperationResult:
        outcome = self._run(Operation.GET, render_get(self._table, entry_id))
        if isinstance(outcome, OperationResult):
            return outcome
        if not outcome.values:
            return OperationResult.failed(f"Entry with id {entry_id} does not exist")
        return OperationResult.ok(data=unescape(outcome.values[0]))

    def add_entry(
        self,
        entry_id: str,
        data: str,
        allow_overwrite: bool = False,
        *,
        require_response: bool = True,
    ) -> OperationResult:
        exists_reason = f"Entry with id {entry_id} already exists"
        if not allow_overwrite:
            probe = self.entry_exists(entry_id)
            if not probe.success:
                return probe
            if probe.exists:
                return OperationResult.failed(exists_reason)

        timestamp = format_timestamp(self._clock())
        query = render_insert(
            self._table,
            entry_id,
            data,
            timestamp,
            if_not_exists=not allow_overwrite,
        )
        outcome = self._run(Operation.ADD, query)
        if isinstance(outcome, OperationResult):
            return outcome
        if not allow_overwrite and _not_applied(outcome):
            # Lost the race against a concurrent writer after the probe.
            return OperationResult.failed(exists_reason)
        return OperationResult.ok()

    def append_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        current = self.get_entry(entry_id)
        if not current.success:
            return current
        return self.add_entry(entry_id, (current.data or "") + data, allow_overwrite=True)

    def update_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        outcome = self._run(Operation.UPDATE, render_update(self._table, entry_id, data))
        if isinstance(outcome, OperationResult):
            return outcome
        if _not_applied(outcome):
            _LOGGER.debug("Update skipped, entry absent table=%s", self._table)
        return OperationResult.ok()

    def remove_entry(self, entry_id: str, *, require_response: bool = True) -> OperationResult:
        outcome = self._run(Operation.REMOVE, render_delete(self._table, entry_id))
        if isinstance(outcome, OperationResult):
            return outcome
        return OperationResult.ok()
