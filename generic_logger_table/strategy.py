"""
Strategy contract shared by the remote-call and direct-query paths.

Both strategies implement the same six operations and report through one
result type, so callers observe identical contracts whichever path serves a
call. Per-operation semantics:

========  ===========================================================
exists    succeeds when the check ran; ``exists`` carries the answer
get       fails when the entry is absent; ``data`` holds the value
add       fails when overwriting is disallowed and the id is taken
append    fails when the entry is absent
update    succeeds (as a no-op) when the entry is absent
remove    succeeds when the entry is absent
========  ===========================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .exceptions import LoggerTableError
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
    RemoveEntryRequest,
    RemoveEntryResult,
    UpdateEntryRequest,
    UpdateEntryResult,
)


class Operation(str, Enum):
    """Entry operations together with their request/result message types."""

    EXISTS = "exists"
    GET = "get"
    ADD = "add"
    APPEND = "append"
    UPDATE = "update"
    REMOVE = "remove"

    @property
    def request_type(self) -> type[Message]:
        return _MESSAGE_TYPES[self][0]

    @property
    def result_type(self) -> type[Message]:
        return _MESSAGE_TYPES[self][1]


_MESSAGE_TYPES: dict[Operation, tuple[type[Message], type[Message]]] = {
    Operation.EXISTS: (EntryExistsRequest, EntryExistsResult),
    Operation.GET: (GetEntryRequest, GetEntryResult),
    Operation.ADD: (AddEntryRequest, AddEntryResult),
    Operation.APPEND: (AppendEntryRequest, AppendEntryResult),
    Operation.UPDATE: (UpdateEntryRequest, UpdateEntryResult),
    Operation.REMOVE: (RemoveEntryRequest, RemoveEntryResult),
}


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Outcome of one entry operation.

    Parameters
    ----------
    success:
        Whether the operation completed as requested.
    reason:
        Human-readable failure reason; empty on success.
    data:
        Entry data for successful gets, otherwise ``None``.
    exists:
        Answer of an existence check, otherwise ``None``.
    error:
        Underlying exception when the failure came from a transport or
        protocol fault rather than from the store.
    """

    success: bool
    reason: str = ""
    data: str | None = None
    exists: bool | None = None
    error: LoggerTableError | None = field(default=None, repr=False, compare=False)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, *, data: str | None = None, exists: bool | None = None) -> "OperationResult":
        return cls(success=True, data=data, exists=exists)

    @classmethod
    def failed(cls, reason: str, error: LoggerTableError | None = None) -> "OperationResult":
        return cls(success=False, reason=reason or "Unknown failure", error=error)


class EntryStrategy(Protocol):
    """
    Behavioral contract of one transport path.

    ``require_response=False`` allows a strategy to hand a write off without
    waiting for its outcome; strategies that always know the outcome ignore it.
    Arguments are validated by the caller before any strategy is invoked.
    """

    def entry_exists(self, entry_id: str) -> OperationResult:
        """Check whether ``entry_id`` is present."""

    def get_entry(self, entry_id: str) -> OperationResult:
        """Read the data of ``entry_id``."""

    def add_entry(
        self,
        entry_id: str,
        data: str,
        allow_overwrite: bool = False,
        *,
        require_response: bool = True,
    ) -> OperationResult:
        """Create ``entry_id``, replacing an existing entry only when allowed."""

    def append_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        """Append ``data`` to an existing entry."""

    def update_entry(self, entry_id: str, data: str, *, require_response: bool = True) -> OperationResult:
        """Overwrite the data of an existing entry."""

    def remove_entry(self, entry_id: str, *, require_response: bool = True) -> OperationResult:
        """Delete ``entry_id`` if present."""
