from __future__ import annotations

import logging
import types
import typing as tp
from pathlib import Path

import httpx

from ._config import FetchOptions
from ._connection import Connection, open_connection
from ._exceptions import ResponseStatusError
from ._slots import CacheSlot, FileCacheSlot
from ._tee import TeeVerifyingStream
from ._utils import filter_mapping, format_http_date, get_safe_url

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("downpour.fetcher")

__all__ = ("ConditionalFetcher",)

ConnectionHook = tp.Callable[[Connection], None]


class ConditionalFetcher:
    """
    Fetches a URL into a cache slot, skipping the download when the cached copy is still fresh.

    When the slot already holds a file, its modification time is sent as
    ``If-Modified-Since``. A ``304`` response, or a ``Last-Modified`` that is
    not newer than the cached file, returns the cached file as is. Anything
    else streams the response body through a `TeeVerifyingStream` into the
    slot's temporary file, which replaces the cached copy only once the
    transfer is complete.

    :param client: Client used for HTTP(S) requests, defaults to a new `httpx.Client`
    :type client: tp.Optional[httpx.Client], optional
    :param options: Request and buffering options, defaults to None
    :type options: tp.Optional[FetchOptions], optional
    :param connection_factory: Callable creating a `Connection` for a URL, defaults to `open_connection`
    :type connection_factory: tp.Optional[tp.Callable[[str], Connection]], optional
    :param request_hook: Called with the connection before the request is sent, defaults to None
    :type request_hook: tp.Optional[ConnectionHook], optional
    :param response_hook: Called with the connection right after it is established, defaults to None
    :type response_hook: tp.Optional[ConnectionHook], optional
    """

    def __init__(
        self,
        client: tp.Optional[httpx.Client] = None,
        options: tp.Optional[FetchOptions] = None,
        connection_factory: tp.Optional[tp.Callable[[str], Connection]] = None,
        request_hook: tp.Optional[ConnectionHook] = None,
        response_hook: tp.Optional[ConnectionHook] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()
        self._options = options if options is not None else FetchOptions()
        self._connection_factory = connection_factory
        self._request_hook = request_hook
        self._response_hook = response_hook

    @property
    def options(self) -> FetchOptions:
        return self._options

    def open_connection(self, url: str) -> Connection:
        if self._connection_factory is not None:
            return self._connection_factory(url)
        return open_connection(url, self._client, self._options)

    def fetch(self, url: str, slot: CacheSlot) -> tp.BinaryIO:
        """
        Returns a stream over the resource, from the cache or from the network.

        The returned stream must be read to the end and closed. Closing a fresh
        download verifies it and promotes it into the slot.

        :param url: URL of the resource
        :type url: str
        :param slot: Where the resource is cached
        :type slot: CacheSlot
        :raises TransportError: when the server can't be reached
        :raises ResponseStatusError: when the server answers with a redirect or an error status
        :raises OSError: when the slot can't be read or written
        :return: A readable binary stream
        :rtype: tp.BinaryIO
        """
        connection = self.open_connection(url)
        safe_url = get_safe_url(url)

        # The precondition only ever comes from the slot.
        for name, value in filter_mapping(self._options.request_headers(), ["If-Modified-Since"]).items():
            connection.set_request_header(name, value)

        modified: tp.Optional[int] = None
        if slot.exists():
            modified = slot.last_modified()
            if_modified_since = format_http_date(modified)
            connection.set_request_header("If-Modified-Since", if_modified_since)
            logger.debug(
                (
                    f"Adding the 'If-Modified-Since' header with the value of '{if_modified_since}' "
                    f"to the request for the resource located at {safe_url}."
                )
            )

        if self._request_hook is not None:
            self._request_hook(connection)

        connection.connect()

        try:
            if self._response_hook is not None:
                self._response_hook(connection)

            status_code = connection.status_code
            if status_code == 304:
                logger.debug(f"Server reported the resource located at {safe_url} as not modified.")
                self._release(connection)
                return slot.open_read()

            if status_code is not None and status_code >= 300:
                raise ResponseStatusError(url, status_code)

            if modified is not None:
                server_modified = connection.get_header_date("Last-Modified")
                if server_modified is not None and server_modified <= modified:
                    logger.debug(
                        (
                            f"Using the cached copy of the resource located at {safe_url} "
                            "because the server copy is not newer."
                        )
                    )
                    self._release(connection)
                    return slot.open_read()

            logger.debug(f"Downloading a fresh copy of the resource located at {safe_url}.")
            return tp.cast(tp.BinaryIO, self._download(connection, slot))
        except BaseException:
            connection.close()
            raise

    def _download(self, connection: Connection, slot: CacheSlot) -> TeeVerifyingStream:
        sink = slot.open_temp()
        try:
            stream = TeeVerifyingStream(
                connection.open_body(),
                sink,
                on_finish=slot.promote,
                on_failure=slot.discard,
                buffer_size=self._options.buffer_size,
            )
        except BaseException:
            sink.close()
            slot.discard()
            raise
        stream.set_expected_bytes(connection.get_content_length())
        return stream

    def _release(self, connection: Connection) -> None:
        for open_stream in (connection.open_body, connection.open_request_stream):
            try:
                stream = open_stream()
                if stream is not None:
                    stream.close()
            except Exception as exc:
                logger.debug(f"Ignoring an error while releasing the connection: {exc!r}")
        connection.close()

    def download(self, url: str, slot: CacheSlot) -> tp.Optional[Path]:
        """
        Fetches the resource and reads it to the end, leaving the slot up to date.

        :return: The path of the cached file for file slots, None for other slots
        :rtype: tp.Optional[Path]
        """
        with self.fetch(url, slot) as stream:
            while stream.read(self._options.chunk_size):
                pass
        return slot.path if isinstance(slot, FileCacheSlot) else None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        self.close()
