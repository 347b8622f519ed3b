"""Bounded pool of reusable part buffers.

The pool is the memory bound of the whole pipeline: the reader has to check a
buffer out before it can read a chunk, and a buffer only comes back once the
part upload that used it has finished. When every buffer is in flight the
reader blocks in ``acquire()``, which is the back-pressure that keeps peak
memory at ``capacity * buffer_size``.

Buffers are allocated lazily, up to the capacity, and reused afterwards.

Thread Safety:
    ``acquire()``, ``release()`` and ``cancel()`` may be called from any
    thread. A checked-out buffer is owned exclusively by its holder until it
    is released.
"""

from __future__ import annotations

import logging
import threading

from s3pipe.errors import UploadCancelledError

logger = logging.getLogger(__name__)


class BufferPool:
    """Fixed-capacity set of equally sized ``bytearray`` buffers."""

    def __init__(self, buffer_size: int, capacity: int) -> None:
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.buffer_size = buffer_size
        self.capacity = capacity
        self._free: list[bytearray] = []
        self._checked_out: set[int] = set()
        self._allocated = 0
        self._cancelled = False
        self._cond = threading.Condition()

    @property
    def live(self) -> int:
        """Number of buffers allocated so far (never above capacity)."""
        with self._cond:
            return self._allocated

    @property
    def in_use(self) -> int:
        with self._cond:
            return len(self._checked_out)

    @property
    def cancelled(self) -> bool:
        with self._cond:
            return self._cancelled

    def acquire(self) -> bytearray:
        """Check out a buffer, blocking until one is free.

        Raises:
            UploadCancelledError: If the pool is (or becomes) cancelled.
        """
        with self._cond:
            while True:
                if self._cancelled:
                    raise UploadCancelledError("buffer pool cancelled")
                if self._free:
                    buf = self._free.pop()
                    break
                if self._allocated < self.capacity:
                    buf = bytearray(self.buffer_size)
                    self._allocated += 1
                    logger.debug(
                        "Allocated buffer %d/%d (%d bytes)",
                        self._allocated,
                        self.capacity,
                        self.buffer_size,
                    )
                    break
                self._cond.wait()
            self._checked_out.add(id(buf))
            return buf

    def release(self, buf: bytearray) -> None:
        """Return a checked-out buffer to the pool.

        Raises:
            ValueError: If the buffer is not currently checked out from this pool.
        """
        with self._cond:
            if id(buf) not in self._checked_out:
                raise ValueError("buffer is not checked out from this pool")
            self._checked_out.discard(id(buf))
            self._free.append(buf)
            self._cond.notify()

    def cancel(self) -> None:
        """Wake every blocked ``acquire()`` with UploadCancelledError.

        Releasing buffers still works after cancellation so that in-flight
        workers can hand theirs back.
        """
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()
