"""Asynchronous HTTP transport for provider API calls.

This module provides a thin aiohttp wrapper that performs exactly one request per call and
returns the raw response body together with its status. Transport failures are raised as
:class:`AsyncCommError` carrying a :class:`TransportErrorKind` category and a message that
can be shown to the user as-is.
"""

from __future__ import annotations

import errno
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Final, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping


__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
    "HttpResponse",
    "TransportErrorKind",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

CONNECT_TIMEOUT: Final[float] = 5.0
# Number of body characters quoted in an HTTP status error
ERROR_BODY_EXCERPT: Final[int] = 200

_NOT_CONNECTED_ERRNOS: Final[frozenset[int]] = frozenset({errno.ENETUNREACH, errno.ENETDOWN})


class TransportErrorKind(Enum):
    NOT_CONNECTED = "not_connected"
    TIMEOUT = "timeout"
    HOST_UNREACHABLE = "host_unreachable"
    CONNECTION_LOST = "connection_lost"
    HTTP_STATUS = "http_status"
    OTHER = "other"


@dataclass(frozen=True)
class HttpResponse:
    """Raw result of one HTTP exchange.

    Attributes:
        status (int): HTTP status code.
        body (bytes): Response body, unparsed.
        content_type (str): Media type without parameters.
        headers (dict[str, str]): Response headers.
    """

    status: int
    body: bytes
    content_type: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parse the body as UTF-8 JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body.decode("utf-8"))

    def __repr__(self) -> str:
        # Audio bodies can be very large, so only report the size
        return f"HttpResponse(status={self.status}, content_type={self.content_type!r}, size={len(self.body)})"


class AsyncHttp:
    """Asynchronous HTTP client performing single request/response exchanges.

    The aiohttp session is created lazily and reused across calls; use the instance as an
    async context manager, or call :meth:`close` when finished.
    """

    def __init__(self, *, total_timeout: float = 30.0) -> None:
        logger.info("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self.total_timeout: float = total_timeout

    async def __aenter__(self) -> Self:
        logger.debug("%s entering context", self.__class__.__name__)
        self.initialize_session(suppress_already_log=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        logger.debug("%s exiting context", self.__class__.__name__)
        await self.close()

    def initialize_session(self, *, suppress_already_log: bool = False) -> None:
        """Create the aiohttp session if there is no open one.

        Args:
            suppress_already_log (bool): If True, do not log when the session is already initialized.
        """
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession()
            logger.debug("%s session initialized", self.__class__.__name__)
        elif not suppress_already_log:
            logger.debug("%s session already initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """The open aiohttp session, created on first use."""
        if self.__session is None or self.__session.closed:
            self.initialize_session()
        if self.__session is None:
            msg = "Session is not initialized"
            raise RuntimeError(msg)
        return self.__session

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
        logger.info("%s session closed", self.__class__.__name__)

    async def get(self, *, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        return await self.request("GET", url=url, headers=headers)

    async def post(
        self, *, url: str, headers: Mapping[str, str] | None = None, data: bytes | None = None
    ) -> HttpResponse:
        return await self.request("POST", url=url, headers=headers, data=data)

    @staticmethod
    def _client_timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        if total_timeout < CONNECT_TIMEOUT:
            # A connect timeout longer than the total would never apply
            return aiohttp.ClientTimeout(total=total_timeout)
        return aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

    async def request(
        self,
        method: HTTPMethod,
        *,
        url: str,
        headers: Mapping[str, str] | None = None,
        data: bytes | None = None,
        total_timeout: float | None = None,
    ) -> HttpResponse:
        """Perform one HTTP exchange.

        Args:
            method (HTTPMethod): The HTTP method to use.
            url (str): Absolute request URL.
            headers (Mapping[str, str] | None): Request headers.
            data (bytes | None): Request body.
            total_timeout (float | None): Total timeout in seconds, defaults to the instance setting.
        Returns:
            HttpResponse: Status and raw body of a 2xx response.
        Raises:
            AsyncCommError: On transport failure or a non-2xx status.
        """
        timeout: float = self.total_timeout if total_timeout is None else total_timeout
        # URLs may carry an API key as a query parameter, so log the path only
        logger.debug("[%s] %s timeout=%s size=%s", method, url.split("?", 1)[0], timeout, len(data or b""))

        try:
            async with self.session.request(
                method=method,
                url=url,
                headers=dict(headers or {}),
                data=data,
                timeout=self._client_timeout(timeout),
            ) as resp:
                raw: bytes = await resp.read()
                response = HttpResponse(
                    status=resp.status,
                    body=raw,
                    content_type=resp.headers.get("Content-Type", "").split(";")[0].strip(),
                    headers=dict(resp.headers),
                )
        except TimeoutError as err:
            logger.debug(err)
            msg = "Request timed out"
            raise AsyncCommTimeoutError(msg, kind=TransportErrorKind.TIMEOUT) from err
        except aiohttp.ClientConnectorDNSError as err:
            logger.debug(err)
            msg = "Cannot connect to server. Check your network connection and ensure the app has network access."
            raise AsyncCommError(msg, kind=TransportErrorKind.HOST_UNREACHABLE) from err
        except aiohttp.ClientConnectorError as err:
            logger.debug(err)
            if err.os_error.errno in _NOT_CONNECTED_ERRNOS:
                msg = "No internet connection"
                raise AsyncCommError(msg, kind=TransportErrorKind.NOT_CONNECTED) from err
            msg = "Cannot connect to host"
            raise AsyncCommError(msg, kind=TransportErrorKind.HOST_UNREACHABLE) from err
        except (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError, ConnectionResetError) as err:
            logger.debug(err)
            msg = "Network connection lost"
            raise AsyncCommError(msg, kind=TransportErrorKind.CONNECTION_LOST) from err
        except aiohttp.InvalidURL as err:
            logger.debug(err)
            msg = "Invalid URL"
            raise AsyncCommError(msg, kind=TransportErrorKind.OTHER) from err
        except aiohttp.ClientError as err:
            logger.debug(err)
            msg: str = f"Network error: {err}"
            raise AsyncCommError(msg, kind=TransportErrorKind.OTHER) from err
        except ValueError as err:
            # aiohttp raises a bare ValueError for control characters in header values
            logger.debug(err)
            msg = f"Invalid request: {err}"
            raise AsyncCommError(msg, kind=TransportErrorKind.OTHER) from err

        logger.debug("Received %r", response)
        if not response.ok:
            raise AsyncCommError(
                f"Error response from the server: {_describe_error_body(response)}",
                kind=TransportErrorKind.HTTP_STATUS,
                status=response.status,
            )
        return response


def _describe_error_body(response: HttpResponse) -> str:
    """Best-effort human readable summary of an error response body."""
    try:
        payload: Any = response.json()
    except (ValueError, UnicodeDecodeError):
        return response.body[:ERROR_BODY_EXCERPT].decode("utf-8", errors="replace").strip() or "(empty body)"

    if isinstance(payload, dict):
        detail: Any = payload.get("detail") or payload.get("error") or payload
        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("status") or detail
        return str(detail)[:ERROR_BODY_EXCERPT]
    return str(payload)[:ERROR_BODY_EXCERPT]


class AsyncCommError(Exception):
    """Base class for asynchronous communication errors.

    Attributes:
        msg (str): Human readable message.
        kind (TransportErrorKind): Failure category.
        status (int | None): HTTP status for ``HTTP_STATUS`` failures.
    """

    def __init__(
        self,
        msg: str | BaseException,
        *,
        kind: TransportErrorKind = TransportErrorKind.OTHER,
        status: int | None = None,
    ) -> None:
        self.msg: str = str(msg)
        self.kind: TransportErrorKind = kind
        self.status: int | None = status
        if status is not None:
            self.msg = f"{self.msg} (status={status})"
        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """Error raised when a request does not complete within the timeout period."""
