from __future__ import annotations

import os
import typing as tp
from dataclasses import dataclass, field

__all__ = ("FetchOptions", "get_default_options")

# 64 KB
DEFAULT_CHUNK_SIZE = 65536

DEFAULT_BUFFER_SIZE = 1024


@dataclass
class FetchOptions:
    """
    Options controlling how a fetch talks to the remote server.

    Attributes:
    ----------
    headers : Mapping[str, str]
        Extra request headers applied to every request, after the
        ``If-Modified-Since`` precondition. Nothing process-wide is touched,
        the headers only go to the request being made.

    user_agent : str | None
        Value of the ``User-Agent`` header. When None, the transport's default
        is kept.

    timeout : float
        Network timeout in seconds for connecting and for each read.

    buffer_size : int
        Capacity of the tee buffer; the sink is written once per filled buffer.

    chunk_size : int
        Size of the reads used by ``ConditionalFetcher.download``.

    follow_redirects : bool
        Whether HTTP redirects are followed before inspecting the response.
        An unfollowed redirect raises ``ResponseStatusError``.

    Examples:
    --------
    >>> options = FetchOptions(user_agent="my-launcher/1.0", timeout=10.0)
    """

    headers: tp.Mapping[str, str] = field(default_factory=dict)
    user_agent: tp.Optional[str] = None
    timeout: float = 30.0
    buffer_size: int = DEFAULT_BUFFER_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    follow_redirects: bool = True

    def __post_init__(self) -> None:
        if self.buffer_size <= 0:
            raise ValueError("Buffer size must be positive")
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")

    def request_headers(self) -> tp.Dict[str, str]:
        headers = dict(self.headers)
        if self.user_agent is not None:
            headers["User-Agent"] = self.user_agent
        return headers


def get_default_options() -> FetchOptions:
    """Get the default fetch options, overridable with DOWNPOUR_* environment variables."""

    USER_AGENT = os.getenv("DOWNPOUR_USER_AGENT")
    TIMEOUT = float(os.getenv("DOWNPOUR_TIMEOUT", "30"))  # seconds
    BUFFER_SIZE = int(os.getenv("DOWNPOUR_BUFFER_SIZE", str(DEFAULT_BUFFER_SIZE)))
    CHUNK_SIZE = int(os.getenv("DOWNPOUR_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)))

    return FetchOptions(
        user_agent=USER_AGENT,
        timeout=TIMEOUT,
        buffer_size=BUFFER_SIZE,
        chunk_size=CHUNK_SIZE,
    )
