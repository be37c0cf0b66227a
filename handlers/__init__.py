"""Network communication handlers.

This package provides the asynchronous HTTP transport used by the provider adapters.
"""

from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError, AsyncHttp, HttpResponse, TransportErrorKind

__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
    "HttpResponse",
    "TransportErrorKind",
]
