import io
import os
import typing as tp
from pathlib import Path

import httpx
import pytest

from downpour import FileCacheSlot

# Sun, 09 Sep 2001 01:46:40 GMT
CACHED_AT = 1_000_000_000


class RecordingSink(io.BytesIO):
    """A sink keeping its content and the size of each write after being closed."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: tp.List[int] = []
        self.data = b""

    def write(self, data: tp.Any) -> int:
        self.writes.append(len(data))
        return super().write(data)

    def close(self) -> None:
        if not self.closed:
            self.data = self.getvalue()
        super().close()


class BrokenSink(RecordingSink):
    def close(self) -> None:
        super().close()
        raise OSError("disk full")


class FailingSource(io.RawIOBase):
    """Yields `data` and then fails like a dropped connection."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._data = data

    def readable(self) -> bool:
        return True

    def read(self, size: tp.Optional[int] = -1) -> bytes:
        if not self._data:
            raise OSError("connection reset")
        if size is None or size < 0:
            size = len(self._data)
        chunk, self._data = self._data[:size], self._data[size:]
        return chunk


class FailingByteStream(httpx.SyncByteStream):
    def __init__(self, data: bytes) -> None:
        self._data = data

    def __iter__(self) -> tp.Iterator[bytes]:
        yield self._data
        raise httpx.ReadError("peer closed connection")


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def cached_slot(tmp_path: Path) -> FileCacheSlot:
    slot = FileCacheSlot(tmp_path / "resource.bin")
    slot.path.write_bytes(b"cached content")
    os.utime(slot.path, (CACHED_AT, CACHED_AT))
    return slot


@pytest.fixture()
def empty_slot(tmp_path: Path) -> FileCacheSlot:
    return FileCacheSlot(tmp_path / "missing.bin")


@pytest.fixture()
def use_temp_dir(tmp_path: Path) -> tp.Iterator[None]:
    cur_dir = os.getcwd()
    os.chdir(tmp_path)
    yield
    os.chdir(cur_dir)
