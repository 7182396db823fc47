from __future__ import annotations

import calendar
import hashlib
import typing as tp
from email.utils import formatdate, parsedate_tz

import httpx

T = tp.TypeVar("T")


def format_http_date(timestamp: tp.Union[int, float]) -> str:
    """
    Format a POSIX timestamp as an HTTP date.

    Sub-second precision is dropped, the result is always expressed in GMT.

    Example:
        >>> format_http_date(783459811)
        'Sat, 29 Oct 1994 19:43:31 GMT'
    """
    return formatdate(timeval=whole_seconds(timestamp), localtime=False, usegmt=True)


def parse_http_date(date: str) -> tp.Optional[int]:
    """
    Parse an HTTP date into a POSIX timestamp.

    Returns None when the value can't be parsed.
    """
    parsed = parsedate_tz(date)
    if parsed is None:
        return None
    try:
        timestamp = calendar.timegm(parsed[:6])
    except (ValueError, OverflowError):
        return None
    offset = parsed[9]
    return timestamp - offset if offset else timestamp


def whole_seconds(timestamp: tp.Union[int, float]) -> int:
    return int(timestamp)


def get_safe_url(url: tp.Union[str, httpx.URL]) -> str:
    """Return the URL without its query string and credentials, suitable for logs."""
    try:
        httpx_url = httpx.URL(url)
    except httpx.InvalidURL:
        return str(url)
    return f"{httpx_url.scheme}://{httpx_url.host}{httpx_url.path}"


def generate_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def filter_mapping(mapping: tp.Mapping[str, T], keys_to_exclude: tp.Iterable[str]) -> tp.Dict[str, T]:
    """
    Filter out specified keys from a string-keyed mapping using case-insensitive comparison.

    Example:
        >>> filter_mapping({"a": 1, "B": 2, "c": 3}, ["b"])
        {'a': 1, 'c': 3}
    """
    exclude_set = {k.lower() for k in keys_to_exclude}
    return {k: v for k, v in mapping.items() if k.lower() not in exclude_set}
