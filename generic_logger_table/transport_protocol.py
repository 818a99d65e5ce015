"""
Collaborator contracts used by :class:`generic_logger_table.client.LoggerTableClient`.

The client depends on these method surfaces rather than on concrete
transports, so TCP, in-process and Redis message transports, as well as any
query transport, can be swapped without touching the entry operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .config import PROTOCOL_NAME, DatabaseKind, ElementId
from .messages import Message, MessageRegistry, RemoteCall


class MessageTransport(Protocol):
    """
    Behavioral contract for delivering remote calls to elements.

    Implementations raise :class:`~generic_logger_table.exceptions.TransportFailureError`
    (or a subclass) for timeouts, connectivity and serialization failures.
    """

    def send(self, call: RemoteCall, registry: MessageRegistry) -> None:
        """Deliver ``call`` without waiting for any reply."""

    def send_and_wait(
        self,
        call: RemoteCall,
        registry: MessageRegistry,
        timeout_seconds: float,
    ) -> list[Message]:
        """Deliver ``call`` and return the reply messages, waiting at most ``timeout_seconds``."""


@dataclass(slots=True)
class QueryResponse:
    """
    Outcome of one textual query.

    Parameters
    ----------
    error:
        Store-reported error; empty string means success.
    values:
        Result value-set, one string per returned cell.
    """

    error: str = ""
    values: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.error


class QueryTransport(Protocol):
    """Behavioral contract for running textual queries against the table store."""

    def execute(self, query: str, agent_id: int) -> QueryResponse:
        """Run ``query`` on the store reachable through ``agent_id``."""


class EndpointResolver(Protocol):
    """Answers which kind of database backs a given agent and which protocol an element runs."""

    def database_kind(self, agent_id: int) -> DatabaseKind:
        """Return the database kind used by ``agent_id``."""

    def protocol_name(self, element: ElementId) -> str:
        """Return the name of the protocol ``element`` runs."""


class StaticEndpointResolver:
    """
    Resolver returning fixed answers, optionally per agent or element.

    Parameters
    ----------
    default:
        Kind reported for agents without an override.
    overrides:
        Agent id to kind mapping.
    protocols:
        Element to protocol name mapping; unlisted elements report
        :data:`~generic_logger_table.config.PROTOCOL_NAME`.
    """

    def __init__(
        self,
        default: DatabaseKind = DatabaseKind.CASSANDRA,
        overrides: dict[int, DatabaseKind] | None = None,
        protocols: dict[ElementId, str] | None = None,
    ) -> None:
        self._default = default
        self._overrides = dict(overrides or {})
        self._protocols = dict(protocols or {})

    def database_kind(self, agent_id: int) -> DatabaseKind:
        return self._overrides.get(int(agent_id), self._default)

    def protocol_name(self, element: ElementId) -> str:
        return self._protocols.get(element, PROTOCOL_NAME)
