"""
Transport factory helpers for easy transport switching.

This module gives application developers a uniform way to pick a message
transport by name without rewriting client bootstrap logic.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from .config import NodeAddress
from .exceptions import ConfigurationError, TransportNotAvailableError
from .transport import LocalMessageTransport, TcpMessageTransport
from .transport_protocol import MessageTransport

if TYPE_CHECKING:  # pragma: no cover - typing-only imports
    from .client import LoggerTableClient
    from .config import LoggerTableConfig
    from .transport_protocol import EndpointResolver, QueryTransport


class TransportBackend(str, Enum):
    """
    Built-in message transport names supported by the factory helpers.

    TCP
        Framed JSON over TCP to :class:`~generic_logger_table.transport.ElementServer`.
    LOCAL
        In-process delivery to an :class:`~generic_logger_table.element.ElementHost`.
    REDIS
        Redis list channels, provided by the optional plugin package.
    """

    TCP = "tcp"
    LOCAL = "local"
    REDIS = "redis"


def _normalize_backend(backend: str | TransportBackend) -> TransportBackend:
    """Normalize a backend name into a :class:`TransportBackend` value."""
    if isinstance(backend, TransportBackend):
        return backend
    lowered = str(backend).strip().lower()
    try:
        return TransportBackend(lowered)
    except ValueError as exc:
        valid = ", ".join(item.value for item in TransportBackend)
        raise ConfigurationError(
            f"Unknown transport {backend!r}. Supported values: {valid}."
        ) from exc


def _reject_unknown(backend: TransportBackend, options: dict[str, Any]) -> None:
    if options:
        unknown = ", ".join(sorted(str(key) for key in options))
        raise ConfigurationError(f"Unknown {backend.value} transport options: {unknown}.")


def available_transports() -> tuple[str, ...]:
    """
    Return transport names available in the current environment.

    The Redis transport appears only when its plugin package and the
    ``redis`` client are importable.
    """
    transports = [TransportBackend.TCP.value, TransportBackend.LOCAL.value]
    try:
        __import__("generic_logger_table_redis")
    except Exception:  # noqa: BLE001 - optional dependency probing
        pass
    else:
        transports.append(TransportBackend.REDIS.value)
    return tuple(transports)


def create_message_transport(
    backend: str | TransportBackend = TransportBackend.TCP,
    **options: Any,
) -> MessageTransport:
    """
    Create a message transport from a short backend name.

    Parameters
    ----------
    backend:
        Transport selector string (``"tcp"``, ``"local"`` or ``"redis"``).
    options:
        Transport-specific options.

        TCP options:
            ``agents`` (mapping of agent id to :class:`NodeAddress` or
            ``"host:port"``), ``security_token``, ``connect_timeout_seconds``,
            ``ssl_context``, ``server_hostname``.
        Local options:
            ``host`` (an :class:`ElementHost`) and ``security_token``.
        Redis options:
            ``redis_url``, ``namespace``, ``redis_client``,
            ``security_token``.
    """
    selected = _normalize_backend(backend)
    security_token = options.pop("security_token", None)
    if selected is TransportBackend.TCP:
        agents = options.pop("agents", None)
        if not isinstance(agents, Mapping) or not agents:
            raise ConfigurationError("TCP transport requires a non-empty 'agents' mapping.")
        routes = {
            int(agent_id): address if isinstance(address, NodeAddress) else _parse_address(str(address))
            for agent_id, address in agents.items()
        }
        tcp_options = {
            key: options.pop(key)
            for key in ("connect_timeout_seconds", "ssl_context", "server_hostname")
            if key in options
        }
        _reject_unknown(selected, options)
        return TcpMessageTransport(routes, security_token=security_token, **tcp_options)
    if selected is TransportBackend.LOCAL:
        host = options.pop("host", None)
        if host is None or not hasattr(host, "handle_envelope"):
            raise ConfigurationError("Local transport requires an ElementHost as 'host'.")
        _reject_unknown(selected, options)
        return LocalMessageTransport(host.handle_envelope, security_token=security_token)
    if selected is TransportBackend.REDIS:
        try:
            from generic_logger_table_redis import RedisMessageTransport, RedisTransportConfig
        except Exception as exc:  # noqa: BLE001 - optional dependency may be absent
            raise TransportNotAvailableError(
                "Redis transport requires the 'redis' extra "
                "(pip install 'generic-logger-table[redis]')."
            ) from exc

        config = options.pop("config", None)
        redis_client = options.pop("redis_client", None)
        if config is None:
            config = RedisTransportConfig(
                redis_url=str(options.pop("redis_url", "redis://127.0.0.1:6379/0")),
                namespace=str(options.pop("namespace", "generic-logger-table")),
            )
        _reject_unknown(selected, options)
        return RedisMessageTransport(
            config=config,
            redis_client=redis_client,
            security_token=security_token,
        )
    raise ConfigurationError(f"Unhandled transport: {selected!r}")


def _parse_address(raw: str) -> NodeAddress:
    """Parse ``host:port`` notation."""
    if ":" not in raw:
        raise ConfigurationError(f"Invalid address {raw!r}; expected host:port.")
    host, raw_port = raw.rsplit(":", 1)
    return NodeAddress(host=host.strip(), port=int(raw_port))


def create_client(
    config: "LoggerTableConfig",
    *,
    transport: str | TransportBackend | None = TransportBackend.TCP,
    query_transport: "QueryTransport | None" = None,
    resolver: "EndpointResolver | None" = None,
    **transport_options: Any,
) -> "LoggerTableClient":
    """
    Build :class:`LoggerTableClient` with a named message transport in one step.

    ``transport=None`` builds a direct-query-only client. The config's shared
    token is used for envelope signing unless ``security_token`` is passed.

    ``client = create_client(config, transport="tcp", agents={12: "10.0.0.5:9500"})``
    """
    from .client import LoggerTableClient

    message_transport: MessageTransport | None = None
    if transport is not None:
        transport_options.setdefault("security_token", config.security.shared_token)
        message_transport = create_message_transport(transport, **transport_options)
    elif transport_options:
        unknown = ", ".join(sorted(transport_options))
        raise ConfigurationError(f"Transport options given without a transport: {unknown}.")
    return LoggerTableClient(
        config,
        message_transport=message_transport,
        query_transport=query_transport,
        resolver=resolver,
    )
