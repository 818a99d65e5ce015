"""
Thread-safe in-memory logger table store.

:class:`InMemoryTableStore` implements the query transport contract for the
statement dialect rendered by :mod:`generic_logger_table.query`. String
literals are kept exactly as embedded, i.e. still escaped; readers are
expected to unescape what they get back, just as against a real store.

Conditional statements answer with an applied-flag value-set: ``["True"]``
when the statement took effect and ``["False"]`` when its condition failed.
"""

from __future__ import annotations

import re
from collections import deque
from copy import deepcopy
from dataclasses import dataclass
from threading import RLock

from .transport_protocol import QueryResponse

_LITERAL = r"'((?:[^']|'')*)'"
_TABLE = r"([A-Za-z0-9_.]+)"

_SELECT = re.compile(rf"SELECT (id|dt|ts) FROM {_TABLE} WHERE id={_LITERAL} LIMIT 1", re.DOTALL)
_INSERT = re.compile(
    rf"INSERT INTO {_TABLE} \(id, dt, ts\) VALUES \({_LITERAL}, {_LITERAL}, {_LITERAL}\)( IF NOT EXISTS)?",
    re.DOTALL,
)
_UPDATE = re.compile(rf"UPDATE {_TABLE} SET dt={_LITERAL} WHERE id={_LITERAL}( IF EXISTS)?", re.DOTALL)
_DELETE = re.compile(rf"DELETE FROM {_TABLE} WHERE id={_LITERAL}", re.DOTALL)

_APPLIED = "True"
_NOT_APPLIED = "False"


@dataclass(slots=True)
class StoredRow:
    """One logger table row, literals kept in their escaped form."""

    dt: str
    ts: str


class InMemoryTableStore:
    """
    Query transport backed by process memory.

    Tables are isolated per routing agent id.
    """

    def __init__(self) -> None:
        self._tables: dict[tuple[int, str], dict[str, StoredRow]] = {}
        self._lock = RLock()
        self.executed: deque[str] = deque(maxlen=1024)

    def execute(self, query: str, agent_id: int) -> QueryResponse:
        """Run one statement and return its value-set or error string."""
        statement = query.strip()
        with self._lock:
            self.executed.append(statement)
            match = _SELECT.fullmatch(statement)
            if match:
                column, table, entry_id = match.groups()
                row = self._table(agent_id, table).get(entry_id)
                if row is None:
                    return QueryResponse()
                value = entry_id if column == "id" else getattr(row, column)
                return QueryResponse(values=[value])
            match = _INSERT.fullmatch(statement)
            if match:
                table, entry_id, data, timestamp, if_not_exists = match.groups()
                rows = self._table(agent_id, table)
                if if_not_exists and entry_id in rows:
                    return QueryResponse(values=[_NOT_APPLIED])
                rows[entry_id] = StoredRow(dt=data, ts=timestamp)
                return QueryResponse(values=[_APPLIED] if if_not_exists else [])
            match = _UPDATE.fullmatch(statement)
            if match:
                table, data, entry_id, if_exists = match.groups()
                rows = self._table(agent_id, table)
                row = rows.get(entry_id)
                if row is None:
                    if if_exists:
                        return QueryResponse(values=[_NOT_APPLIED])
                    # Plain updates upsert, the way wide-column stores behave.
                    rows[entry_id] = StoredRow(dt=data, ts="")
                    return QueryResponse()
                row.dt = data
                return QueryResponse(values=[_APPLIED] if if_exists else [])
            match = _DELETE.fullmatch(statement)
            if match:
                table, entry_id = match.groups()
                self._table(agent_id, table).pop(entry_id, None)
                return QueryResponse()
        return QueryResponse(error=f"Unsupported statement: {statement[:80]!r}")

    def _table(self, agent_id: int, table: str) -> dict[str, StoredRow]:
        return self._tables.setdefault((int(agent_id), table), {})

    def rows(self, table: str, agent_id: int) -> dict[str, StoredRow]:
        """Return a copy of one table keyed by escaped id."""
        with self._lock:
            return deepcopy(self._tables.get((int(agent_id), table), {}))

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self.executed.clear()
