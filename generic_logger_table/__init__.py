"""
generic_logger_table
====================

Client for keyed entries stored in a Generic Logger Table element.

An entry is an ``id -> data`` string pair kept in the element's logger table.
The client reaches it through one of two interchangeable paths:

* **remote call** (default): request/result messages addressed to the
  element's inbound parameter, over TCP, Redis or in-process delivery
* **direct query**: textual statements run against the logger table through
  a query transport

Both paths honor the same contracts: create-if-absent adds, update-if-present
updates, idempotent removes, timeout-bounded remote calls, and a quote
escaping discipline that keeps arbitrary text intact on the query path.

Typical usage::

    from generic_logger_table import ElementId, LoggerTableConfig, create_client

    client = create_client(
        LoggerTableConfig(element=ElementId(12, 345)),
        transport="tcp",
        agents={12: "10.0.0.5:9500"},
    )
    client.add_entry("job-1", "queued", allow_overwrite=True)
    result = client.try_get_entry("job-1")
    if result:
        print(result.data)

Serving elements for those calls::

    from generic_logger_table import ElementHost, ElementServer, NodeAddress

    host = ElementHost()
    host.create_element(ElementId(12, 345))
    server = ElementServer(bind=NodeAddress("0.0.0.0", 9500), envelope_handler=host.handle_envelope)
    server.start()
"""

from .backends import TransportBackend, available_transports, create_client, create_message_transport
from .client import LoggerTableClient
from .config import (
    INBOUND_PARAMETER_ID,
    PROTOCOL_NAME,
    RETURN_PARAMETER_ID,
    DatabaseKind,
    ElementId,
    LoggerTableConfig,
    NodeAddress,
    ReturnAddress,
    SecurityConfig,
    logger_table_name,
)
from .element import ElementHost, LoggerTableElement
from .escaping import escape, from_hex_string, to_hex_string, unescape
from .exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    LoggerTableError,
    OperationFailedError,
    ProtocolMismatchError,
    TransportFailureError,
    TransportTimeoutError,
)
from .memory import InMemoryTableStore
from .messages import MessageRegistry, default_registry
from .query import DirectQueryStrategy
from .remote import RemoteCallStrategy
from .strategy import Operation, OperationResult
from .transport import ElementServer, LocalMessageTransport, TcpMessageTransport
from .transport_protocol import (
    EndpointResolver,
    MessageTransport,
    QueryResponse,
    QueryTransport,
    StaticEndpointResolver,
)

__all__ = [
    "ConfigurationError",
    "DatabaseKind",
    "DirectQueryStrategy",
    "ElementHost",
    "ElementId",
    "ElementServer",
    "EndpointResolver",
    "INBOUND_PARAMETER_ID",
    "InMemoryTableStore",
    "InvalidArgumentError",
    "LocalMessageTransport",
    "LoggerTableClient",
    "LoggerTableConfig",
    "LoggerTableElement",
    "LoggerTableError",
    "MessageRegistry",
    "MessageTransport",
    "NodeAddress",
    "Operation",
    "OperationFailedError",
    "OperationResult",
    "PROTOCOL_NAME",
    "ProtocolMismatchError",
    "QueryResponse",
    "QueryTransport",
    "RETURN_PARAMETER_ID",
    "RemoteCallStrategy",
    "ReturnAddress",
    "SecurityConfig",
    "StaticEndpointResolver",
    "TcpMessageTransport",
    "TransportBackend",
    "TransportFailureError",
    "TransportTimeoutError",
    "available_transports",
    "create_client",
    "create_message_transport",
    "default_registry",
    "escape",
    "from_hex_string",
    "logger_table_name",
    "to_hex_string",
    "unescape",
]
