"""
Redis element worker serving an :class:`~generic_logger_table.element.ElementHost`.
"""

from __future__ import annotations

import logging
import threading

from generic_logger_table.config import INBOUND_PARAMETER_ID, ReturnAddress
from generic_logger_table.element import ElementHost
from generic_logger_table.exceptions import LoggerTableError
from generic_logger_table.protocol import decode_message
from redis import Redis
from redis.exceptions import RedisError

from .transport import RedisTransportConfig, encode_envelope, inbound_key, return_key

_LOGGER = logging.getLogger(__name__)


class RedisElementWorker:
    """
    Pull call envelopes from the inbound lists of hosted elements and answer them.

    Parameters
    ----------
    host:
        Elements to serve; the inbound list of every hosted element is
        watched.
    config:
        Connection and namespace settings shared with the callers.
    redis_client:
        Optional preconfigured Redis client instance.
    poll_timeout_seconds:
        Longest single ``BLPOP`` wait, which bounds how fast :meth:`stop`
        takes effect.
    """

    def __init__(
        self,
        host: ElementHost,
        *,
        config: RedisTransportConfig | None = None,
        redis_client: Redis | None = None,
        poll_timeout_seconds: float = 1.0,
    ) -> None:
        self.host = host
        self.config = config or RedisTransportConfig()
        self._redis = redis_client or Redis.from_url(self.config.redis_url)
        self._poll_timeout_seconds = poll_timeout_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _inbound_keys(self) -> list[str]:
        return [
            inbound_key(self.config.namespace, element, INBOUND_PARAMETER_ID)
            for element in self.host.element_ids()
        ]

    def poll_once(self, timeout_seconds: float | None = None) -> bool:
        """
        Wait for one call and handle it.

        Returns
        -------
        bool
            ``True`` when a call was taken off an inbound list.
        """
        keys = self._inbound_keys()
        if not keys:
            return False
        wait = self._poll_timeout_seconds if timeout_seconds is None else timeout_seconds
        popped = self._redis.blpop(keys, timeout=wait)
        if popped is None:
            return False
        _, raw = popped
        try:
            envelope = decode_message(raw)
        except LoggerTableError as exc:
            _LOGGER.warning("Dropping undecodable call reason=%s", exc)
            return True
        response = self.host.handle_envelope(envelope)
        if response is None:
            return True
        payload = envelope.get("payload")
        raw_return = payload.get("return_address") if isinstance(payload, dict) else None
        if not isinstance(raw_return, dict):
            return True
        try:
            address = ReturnAddress.from_dict(raw_return)
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.warning("Dropping reply with malformed return address reason=%s", exc)
            return True
        key = return_key(self.config.namespace, address, str(envelope.get("correlation_id", "")))
        pipeline = self._redis.pipeline()
        pipeline.rpush(key, encode_envelope(response))
        pipeline.expire(key, self.config.reply_ttl_seconds)
        pipeline.execute()
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except RedisError as exc:
                _LOGGER.warning("Redis element worker poll failed reason=%s", exc)
                self._stop.wait(self._poll_timeout_seconds)
            except Exception as exc:  # noqa: BLE001 - one bad call must not stop the worker
                _LOGGER.warning("Redis element worker dropped call reason=%s", exc)

    def start(self) -> None:
        """Start the background polling thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="logger-table-redis-worker",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the polling thread and wait for it to exit."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self._poll_timeout_seconds + 1.0)
        self._thread = None
