"""
Redis-backed message transport.

Channels are Redis lists:

* inbound: ``<namespace>:inbound:<agent>:<element>:<parameter>``; callers
  ``RPUSH`` call envelopes, element workers ``BLPOP`` them
* return: ``<namespace>:return:<agent>:<element>:<parameter>:<correlation>``;
  one list per call expecting a reply, read with ``BLPOP`` bounded by the
  call timeout
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from generic_logger_table.config import ElementId, ReturnAddress
from generic_logger_table.exceptions import TransportFailureError, TransportTimeoutError
from generic_logger_table.messages import Message, MessageRegistry, RemoteCall
from generic_logger_table.protocol import (
    assert_authenticated,
    assert_protocol_compatible,
    decode_message,
    decode_reply,
    encode_call,
)
from redis import Redis
from redis.exceptions import RedisError

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RedisTransportConfig:
    """
    Configuration for :class:`RedisMessageTransport` and the element worker.

    Parameters
    ----------
    redis_url:
        Redis connection URL used when a client is not directly supplied.
    namespace:
        Prefix for all channel keys.
    reply_ttl_seconds:
        Lifetime of a reply list nobody collected.
    """

    redis_url: str = "redis://127.0.0.1:6379/0"
    namespace: str = "generic-logger-table"
    reply_ttl_seconds: int = 30


def inbound_key(namespace: str, element: ElementId, parameter_id: int) -> str:
    return f"{namespace}:inbound:{element.agent_id}:{element.element_id}:{parameter_id}"


def return_key(namespace: str, address: ReturnAddress, correlation_id: str) -> str:
    return (
        f"{namespace}:return:{address.agent_id}:{address.element_id}:"
        f"{address.parameter_id}:{correlation_id}"
    )


def encode_envelope(envelope: dict[str, Any]) -> str:
    return json.dumps(envelope, separators=(",", ":"), sort_keys=True)


class RedisMessageTransport:
    """
    Deliver remote calls through Redis list channels.

    Parameters
    ----------
    config:
        Connection and namespace settings.
    redis_client:
        Optional preconfigured Redis client instance.
    security_token:
        Optional shared token for HMAC envelope authentication.
    """

    def __init__(
        self,
        *,
        config: RedisTransportConfig | None = None,
        redis_client: Redis | None = None,
        security_token: str | None = None,
    ) -> None:
        self.config = config or RedisTransportConfig()
        self._redis = redis_client or Redis.from_url(self.config.redis_url)
        self._security_token = security_token

    def _push(self, call: RemoteCall, registry: MessageRegistry) -> None:
        envelope = encode_call(call, registry, security_token=self._security_token)
        key = inbound_key(self.config.namespace, call.target, call.parameter_id)
        try:
            self._redis.rpush(key, encode_envelope(envelope))
        except RedisError as exc:
            raise TransportFailureError(f"Cannot push call to {key}: {exc}") from exc

    def send(self, call: RemoteCall, registry: MessageRegistry) -> None:
        self._push(call, registry)

    def send_and_wait(
        self,
        call: RemoteCall,
        registry: MessageRegistry,
        timeout_seconds: float,
    ) -> list[Message]:
        if call.return_address is None:
            raise TransportFailureError("A call waiting for a reply needs a return address.")
        reply_key = return_key(self.config.namespace, call.return_address, call.correlation_id)
        self._push(call, registry)
        try:
            popped = self._redis.blpop([reply_key], timeout=timeout_seconds)
        except RedisError as exc:
            raise TransportFailureError(f"Cannot read reply from {reply_key}: {exc}") from exc
        if popped is None:
            _LOGGER.debug("Reply timed out key=%s timeout=%.2f", reply_key, timeout_seconds)
            raise TransportTimeoutError(
                f"No reply for call {call.correlation_id} within {timeout_seconds:.2f}s."
            )
        _, raw = popped
        response = decode_message(raw)
        assert_protocol_compatible(response)
        assert_authenticated(response, self._security_token)
        return decode_reply(response, registry, correlation_id=call.correlation_id)
