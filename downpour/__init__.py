from downpour._config import FetchOptions as FetchOptions, get_default_options as get_default_options
from downpour._connection import (
    Connection as Connection,
    FileConnection as FileConnection,
    HTTPConnection as HTTPConnection,
    ResponseStream as ResponseStream,
    open_connection as open_connection,
)
from downpour._exceptions import (
    DownpourError as DownpourError,
    IncompleteTransferError as IncompleteTransferError,
    ResponseStatusError as ResponseStatusError,
    TransportError as TransportError,
    UnsupportedSchemeError as UnsupportedSchemeError,
)
from downpour._fetcher import ConditionalFetcher as ConditionalFetcher
from downpour._slots import CacheDirectory as CacheDirectory, CacheSlot as CacheSlot, FileCacheSlot as FileCacheSlot
from downpour._tee import TeeVerifyingStream as TeeVerifyingStream
from downpour._utils import format_http_date as format_http_date, parse_http_date as parse_http_date

__all__ = (
    # Fetching
    "ConditionalFetcher",
    "TeeVerifyingStream",
    ## Connections
    "Connection",
    "HTTPConnection",
    "FileConnection",
    "ResponseStream",
    "open_connection",
    ## Cache slots
    "CacheSlot",
    "FileCacheSlot",
    "CacheDirectory",
    # Configuration
    "FetchOptions",
    "get_default_options",
    # Dates
    "format_http_date",
    "parse_http_date",
    # Exceptions
    "DownpourError",
    "TransportError",
    "ResponseStatusError",
    "UnsupportedSchemeError",
    "IncompleteTransferError",
)
