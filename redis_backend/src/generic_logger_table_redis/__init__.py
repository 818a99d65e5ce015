"""
Redis transport plugin for generic_logger_table.

This package is kept separate from the core library so users only need the
``redis`` client when they choose Redis channels:

    from generic_logger_table import ElementHost, ElementId
    from generic_logger_table_redis import RedisElementWorker

    host = ElementHost()
    host.create_element(ElementId(12, 345))
    worker = RedisElementWorker(host)
    worker.start()

Clients can either import this package directly or use the core factory:

    from generic_logger_table import create_client
    client = create_client(config, transport="redis", redis_url="redis://127.0.0.1:6379/0")
"""

from .transport import RedisMessageTransport, RedisTransportConfig
from .worker import RedisElementWorker

__all__ = ["RedisElementWorker", "RedisMessageTransport", "RedisTransportConfig"]
