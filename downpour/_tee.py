from __future__ import annotations

import io
import logging
import threading
import typing as tp
from dataclasses import dataclass

from ._config import DEFAULT_BUFFER_SIZE
from ._exceptions import IncompleteTransferError

logger = logging.getLogger("downpour.tee")

__all__ = ("TeeVerifyingStream",)

Callback = tp.Callable[[], tp.Any]


@dataclass
class TransferState:
    expected_bytes: int = -1
    received_bytes: int = 0
    closed: bool = False
    faulted: bool = False
    notified: bool = False


class TeeVerifyingStream(io.RawIOBase):
    """
    A readable stream that copies everything it reads into a sink.

    Bytes pulled from ``source`` are handed to the caller and buffered; every
    time the buffer fills it is written to ``sink``. Closing the stream writes
    the remaining buffered bytes, closes both ends and checks that the number
    of bytes seen matches the expected total (when one was declared).

    Exactly one of ``on_finish`` / ``on_failure`` is called, once, on close.
    A stream garbage collected without being closed counts as failed.
    Exceptions raised by those callbacks are logged and never reach the caller.

    :param source: Stream to read the data from
    :type source: tp.BinaryIO
    :param sink: Stream receiving a copy of the data
    :type sink: tp.BinaryIO
    :param on_finish: Called when the transfer turned out complete, defaults to None
    :type on_finish: tp.Optional[Callback], optional
    :param on_failure: Called when the transfer is incomplete or faulted, defaults to None
    :type on_failure: tp.Optional[Callback], optional
    :param buffer_size: Number of bytes collected before each sink write, defaults to 1024
    :type buffer_size: int
    """

    def __init__(
        self,
        source: tp.BinaryIO,
        sink: tp.BinaryIO,
        on_finish: tp.Optional[Callback] = None,
        on_failure: tp.Optional[Callback] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        super().__init__()
        if buffer_size <= 0:
            raise ValueError("Buffer size must be positive")

        self._source = source
        self._sink = sink
        self._on_finish = on_finish
        self._on_failure = on_failure
        self._buffer = bytearray()
        self._buffer_size = buffer_size
        self._state = TransferState()
        self._lock = threading.Lock()

    def set_on_finish(self, on_finish: tp.Optional[Callback]) -> None:
        self._on_finish = on_finish

    def set_on_failure(self, on_failure: tp.Optional[Callback]) -> None:
        self._on_failure = on_failure

    def set_expected_bytes(self, expected_bytes: int) -> None:
        """
        Declares how many bytes the transfer should contain.

        -1 disables the completeness check.
        """
        if expected_bytes < -1:
            raise ValueError("Expected bytes must be -1 or a non-negative number")
        with self._lock:
            self._state.expected_bytes = expected_bytes

    def get_expected_bytes(self) -> int:
        with self._lock:
            return self._state.expected_bytes

    def get_received_bytes(self) -> int:
        with self._lock:
            return self._state.received_bytes

    @property
    def faulted(self) -> bool:
        with self._lock:
            return self._state.faulted

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: tp.Any) -> int:
        view = memoryview(buffer).cast("B")
        data = self._read_source(len(view))
        view[: len(data)] = data
        return len(data)

    def read(self, size: tp.Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        return self._read_source(size)

    def readall(self) -> bytes:
        chunks = []
        while True:
            chunk = self._read_source(io.DEFAULT_BUFFER_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def _read_source(self, size: int) -> bytes:
        with self._lock:
            if self._state.closed:
                raise ValueError("I/O operation on closed stream.")
        if size == 0:
            return b""

        try:
            data = self._source.read(size)
            if not data:
                # End of the source, nothing to cache.
                return b""
            self._buffer += data
            if len(self._buffer) >= self._buffer_size:
                self._sink.write(self._buffer)
                self._buffer.clear()
        except Exception:
            with self._lock:
                self._state.faulted = True
            raise

        with self._lock:
            self._state.received_bytes += len(data)
        return bytes(data)

    def close(self) -> None:
        """
        Closes the source and the sink, then verifies the transfer.

        :raises IncompleteTransferError: when the received byte count doesn't
            match the expected one, or a read failed earlier
        """
        with self._lock:
            if self._state.closed:
                return
            self._state.closed = True

        try:
            try:
                self._source.close()
            finally:
                self._close_sink()
        except Exception:
            with self._lock:
                self._state.faulted = True
            self._notify()
            raise
        finally:
            super().close()

        if not self._notify():
            with self._lock:
                expected, received = self._state.expected_bytes, self._state.received_bytes
            raise IncompleteTransferError(expected, received)

    def _close_sink(self) -> None:
        try:
            if self._buffer:
                self._sink.write(self._buffer)
        finally:
            self._buffer.clear()
            self._sink.close()

    def __del__(self) -> None:
        # A stream dropped without close() is never promoted.
        if not hasattr(self, "_lock"):
            return
        with self._lock:
            if self._state.closed:
                return
            self._state.closed = True
            self._state.faulted = True

        logger.debug("Transfer stream was garbage collected before being closed.")
        self._buffer.clear()
        for stream in (self._source, self._sink):
            try:
                stream.close()
            except Exception:
                logger.exception("Failed to close an abandoned transfer stream")
        self._notify()
        super().close()

    def _notify(self) -> bool:
        with self._lock:
            state = self._state
            expected, received, faulted = state.expected_bytes, state.received_bytes, state.faulted
            finished = not faulted and (expected == -1 or expected == received)
            if state.notified:
                return finished
            state.notified = True

        if finished:
            logger.debug(f"Transfer finished after {received} bytes.")
            callback = self._on_finish
        else:
            logger.debug(f"Transfer failed: expected {expected} bytes, received {received}, faulted={faulted}.")
            callback = self._on_failure

        if callback is not None:
            try:
                callback()
            except Exception:
                logger.exception("Transfer notification callback raised an exception")
        return finished
