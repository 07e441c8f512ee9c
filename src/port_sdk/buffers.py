"""Bounded, thread-safe pool of reusable byte buffers."""

import io
import queue
from collections.abc import Iterator
from contextlib import contextmanager

DEFAULT_POOL_SIZE = 16


class BufferPool:
    """Pool of homogeneous ``io.BytesIO`` buffers.

    Buffers are handed out reset and taken back on every exit path of the
    ``buffer()`` context manager. When the pool is empty a new buffer is
    allocated; when it is full a returned buffer is dropped.
    """

    def __init__(self, max_size: int = DEFAULT_POOL_SIZE):
        if max_size < 1:
            msg = "max_size must be at least 1"
            raise ValueError(msg)
        self._buffers: queue.LifoQueue[io.BytesIO] = queue.LifoQueue(maxsize=max_size)

    def __len__(self) -> int:
        return self._buffers.qsize()

    def acquire(self) -> io.BytesIO:
        try:
            buf = self._buffers.get_nowait()
        except queue.Empty:
            return io.BytesIO()
        _reset(buf)
        return buf

    def release(self, buf: io.BytesIO) -> None:
        _reset(buf)
        try:
            self._buffers.put_nowait(buf)
        except queue.Full:
            pass

    @contextmanager
    def buffer(self) -> Iterator[io.BytesIO]:
        """Borrow a reset buffer for the duration of the ``with`` block."""
        buf = self.acquire()
        try:
            yield buf
        finally:
            self.release(buf)


def _reset(buf: io.BytesIO) -> None:
    buf.seek(0)
    buf.truncate()
