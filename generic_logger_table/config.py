"""
Configuration models for logger table clients.

This module centralizes all tunable runtime settings used by
:class:`generic_logger_table.client.LoggerTableClient`:

* the target element and the caller's return address
* the remote-call timeout
* the backing database kind that decides the logger table name
* optional shared-token envelope signing

It also holds the fixed protocol constants of a Generic Logger Table element.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .exceptions import ConfigurationError

PROTOCOL_NAME = "Generic Logger Table"
"""Name of the protocol every logger table element runs."""

INBOUND_PARAMETER_ID = 9000000
"""Parameter on the element that receives incoming request calls."""

RETURN_PARAMETER_ID = 9000001
"""Parameter used as the return channel for replies."""

LOGGER_TABLE_PID = 1000
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_KEYSPACE = "sldmadb"


@dataclass(frozen=True, slots=True)
class NodeAddress:
    """
    TCP endpoint of an agent hosting logger table elements.

    Parameters
    ----------
    host:
        DNS name or IP address that can be reached by clients.
    port:
        TCP port where the element server listens.
    """

    host: str
    port: int

    def __post_init__(self) -> None:
        """Validate the host/port pair at construction time."""
        if not self.host:
            raise ValueError("NodeAddress.host must be a non-empty string.")
        if not (1 <= int(self.port) <= 65535):
            raise ValueError("NodeAddress.port must be in range 1..65535.")

    def as_dict(self) -> dict[str, object]:
        """Convert the address into a JSON-friendly dictionary."""
        return {"host": self.host, "port": self.port}

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "NodeAddress":
        """Create an address from a mapping with ``host`` and ``port`` keys."""
        return cls(host=str(payload["host"]), port=int(payload["port"]))


@dataclass(frozen=True, slots=True)
class ElementId:
    """
    Identity of one element: the agent it runs on plus its element number.
    """

    agent_id: int
    element_id: int

    def __post_init__(self) -> None:
        if int(self.agent_id) < 0:
            raise ValueError("ElementId.agent_id must be >= 0.")
        if int(self.element_id) < 0:
            raise ValueError("ElementId.element_id must be >= 0.")

    def __str__(self) -> str:
        return f"{self.agent_id}/{self.element_id}"

    @classmethod
    def parse(cls, raw: str) -> "ElementId":
        """
        Parse the ``"<agent>/<element>"`` notation.

        Raises
        ------
        ValueError
            If ``raw`` does not contain exactly two integer parts.
        """
        parts = str(raw).strip().split("/")
        if len(parts) != 2:
            raise ValueError(f"Invalid element id {raw!r}; expected agent/element.")
        return cls(agent_id=int(parts[0]), element_id=int(parts[1]))


class DatabaseKind(str, Enum):
    """
    Backing store kinds an agent can report.

    CASSANDRA
        Single-node store; logger tables live in the default keyspace.
    CASSANDRA_CLUSTER
        Clustered store; logger tables must be qualified with the keyspace.
    """

    CASSANDRA = "cassandra"
    CASSANDRA_CLUSTER = "cassandra_cluster"


def logger_table_name(
    database_kind: DatabaseKind,
    element: ElementId,
    *,
    keyspace: str = DEFAULT_KEYSPACE,
) -> str:
    """
    Return the name of the logger table backing ``element``.

    The keyspace prefix is only present for clustered databases, e.g.
    ``sldmadb.elementdata_12_345_1000``.
    """
    prefix = f"{keyspace}." if database_kind is DatabaseKind.CASSANDRA_CLUSTER else ""
    return f"{prefix}elementdata_{element.agent_id}_{element.element_id}_{LOGGER_TABLE_PID}"


@dataclass(frozen=True, slots=True)
class ReturnAddress:
    """
    Where replies to a remote call must be delivered.

    Parameters
    ----------
    agent_id, element_id:
        Identity of the caller.
    parameter_id:
        Return channel on the caller side.
    """

    agent_id: int
    element_id: int
    parameter_id: int = RETURN_PARAMETER_ID

    def as_dict(self) -> dict[str, object]:
        return {
            "agent_id": self.agent_id,
            "element_id": self.element_id,
            "parameter_id": self.parameter_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "ReturnAddress":
        return cls(
            agent_id=int(payload["agent_id"]),
            element_id=int(payload["element_id"]),
            parameter_id=int(payload.get("parameter_id", RETURN_PARAMETER_ID)),
        )


@dataclass(slots=True)
class SecurityConfig:
    """
    Security settings for envelope authentication.

    When ``shared_token`` is set, every outbound envelope is signed and every
    inbound envelope must pass signature validation.
    """

    shared_token: str | None = None


@dataclass(slots=True)
class LoggerTableConfig:
    """
    Top-level configuration used by :class:`LoggerTableClient`.

    Parameters
    ----------
    element:
        Logger table element the client talks to.
    timeout_seconds:
        Upper bound for every remote call that waits for a reply.
    caller:
        Return address attached to calls that expect a reply. Defaults to the
        target element's own identity on the return channel.
    database_kind:
        Backing store kind. When ``None`` it is asked from the endpoint
        resolver once, at client construction.
    keyspace:
        Keyspace used to qualify table names on clustered databases.
    security:
        Envelope authentication settings shared with the element host.
    """

    element: ElementId
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    caller: ReturnAddress | None = None
    database_kind: DatabaseKind | None = None
    keyspace: str = DEFAULT_KEYSPACE
    security: SecurityConfig = field(default_factory=SecurityConfig)

    def __post_init__(self) -> None:
        """Validate configuration values that affect runtime safety."""
        if self.timeout_seconds <= 0:
            raise ConfigurationError("LoggerTableConfig.timeout_seconds must be > 0.")
        if not self.keyspace:
            raise ConfigurationError("LoggerTableConfig.keyspace must be non-empty.")
        token = self.security.shared_token
        if token is not None and not token.strip():
            raise ConfigurationError("SecurityConfig.shared_token cannot be blank when provided.")

    @property
    def return_address(self) -> ReturnAddress:
        """Return the address replies should be delivered to."""
        if self.caller is not None:
            return self.caller
        return ReturnAddress(self.element.agent_id, self.element.element_id)
