from __future__ import annotations

import abc
import io
import logging
import typing as tp
from pathlib import Path
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from ._config import FetchOptions
from ._exceptions import TransportError, UnsupportedSchemeError
from ._utils import get_safe_url, parse_http_date

logger = logging.getLogger("downpour.connection")

__all__ = (
    "Connection",
    "HTTPConnection",
    "FileConnection",
    "ResponseStream",
    "open_connection",
)

HTTP_SCHEMES = ("http", "https")


class Connection(abc.ABC):
    """
    A single request to a remote resource.

    Request headers are set before `connect`; status and response headers
    are available after it.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.request_headers = httpx.Headers()

    def set_request_header(self, name: str, value: str) -> None:
        self.request_headers[name] = value

    def get_request_header(self, name: str) -> tp.Optional[str]:
        return self.request_headers.get(name)

    @abc.abstractmethod
    def connect(self) -> None:
        pass

    @property
    @abc.abstractmethod
    def status_code(self) -> tp.Optional[int]:
        """Numeric status, or None when the scheme has no such concept."""

    @abc.abstractmethod
    def get_header(self, name: str) -> tp.Optional[str]:
        pass

    def get_header_date(self, name: str) -> tp.Optional[int]:
        """Response header parsed as a POSIX timestamp, None when missing or malformed."""
        value = self.get_header(name)
        if value is None:
            return None
        return parse_http_date(value)

    def get_content_length(self) -> int:
        value = self.get_header("Content-Length")
        if value is None:
            return -1
        try:
            length = int(value)
        except ValueError:
            return -1
        return length if length >= 0 else -1

    @abc.abstractmethod
    def open_body(self) -> tp.BinaryIO:
        pass

    def open_request_stream(self) -> tp.Optional[tp.BinaryIO]:
        return None

    @abc.abstractmethod
    def close(self) -> None:
        pass


class ResponseStream(io.RawIOBase):
    """File-like view over the raw bytes of a streamed httpx response."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__()
        self._response = response
        self._iterator: tp.Optional[tp.Iterator[bytes]] = None
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: tp.Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream.")
        if self._iterator is None:
            self._iterator = self._response.iter_raw()

        while not self._pending:
            try:
                chunk = next(self._iterator, None)
            except (httpx.TransportError, httpx.StreamError) as exc:
                raise TransportError(f"Failed to read the response body of {get_safe_url(self._response.url)}") from exc
            if chunk is None:
                return 0
            self._pending = chunk

        view = memoryview(buffer).cast("B")
        size = min(len(view), len(self._pending))
        view[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


class HTTPConnection(Connection):
    """
    A connection performed with an `httpx.Client`.

    The request is sent with ``Accept-Encoding: identity`` so that the bytes
    read from the body are the bytes counted by ``Content-Length``.
    """

    def __init__(self, url: str, client: httpx.Client, options: tp.Optional[FetchOptions] = None) -> None:
        super().__init__(url)
        self._client = client
        self._options = options if options is not None else FetchOptions()
        self._response: tp.Optional[httpx.Response] = None
        self.set_request_header("Accept-Encoding", "identity")

    @property
    def response(self) -> httpx.Response:
        if self._response is None:
            raise RuntimeError("The connection has not been established yet.")
        return self._response

    def connect(self) -> None:
        request = self._client.build_request(
            "GET",
            self.url,
            headers=self.request_headers,
            timeout=self._options.timeout,
        )
        logger.debug(f"Sending a GET request to {get_safe_url(request.url)}.")
        try:
            self._response = self._client.send(
                request,
                stream=True,
                follow_redirects=self._options.follow_redirects,
            )
        except httpx.RequestError as exc:
            raise TransportError(f"Failed to connect to {get_safe_url(request.url)}: {exc}") from exc

    @property
    def status_code(self) -> tp.Optional[int]:
        return self.response.status_code

    def get_header(self, name: str) -> tp.Optional[str]:
        return self.response.headers.get(name)

    def open_body(self) -> tp.BinaryIO:
        return tp.cast(tp.BinaryIO, ResponseStream(self.response))

    def close(self) -> None:
        if self._response is not None:
            self._response.close()


class FileConnection(Connection):
    """
    A connection to a ``file:`` URL.

    Local files have no status codes and no validators, so fetches through
    this connection always copy the file.
    """

    def __init__(self, url: str) -> None:
        super().__init__(url)
        self.path = Path(url2pathname(urlsplit(url).path))
        self._file: tp.Optional[tp.BinaryIO] = None
        self._size = -1

    def connect(self) -> None:
        self._file = open(self.path, "rb")
        self._size = self.path.stat().st_size

    @property
    def status_code(self) -> tp.Optional[int]:
        return None

    def get_header(self, name: str) -> tp.Optional[str]:
        if name.lower() == "content-length" and self._size >= 0:
            return str(self._size)
        return None

    def open_body(self) -> tp.BinaryIO:
        if self._file is None:
            raise RuntimeError("The connection has not been established yet.")
        return self._file

    def close(self) -> None:
        if self._file is not None:
            self._file.close()


def open_connection(url: str, client: httpx.Client, options: tp.Optional[FetchOptions] = None) -> Connection:
    scheme = urlsplit(url).scheme.lower()
    if scheme in HTTP_SCHEMES:
        return HTTPConnection(url, client, options)
    if scheme == "file":
        return FileConnection(url)
    raise UnsupportedSchemeError(f"Unsupported URL scheme {scheme!r} in {url}")
