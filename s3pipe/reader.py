"""Split a one-pass input stream into numbered chunks.

The reader trusts the declared input size, not the stream's EOF: it reads
exactly ``input_size`` bytes and stops, leaving any excess in the stream.
A stream that ends early is a TruncatedInputError, never a shorter upload.

Every chunk lives in a buffer checked out from a BufferPool. Whoever consumes
the chunk must call ``release()`` once done with its bytes.
"""

from __future__ import annotations

import logging
import select
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import BinaryIO

from s3pipe.buffers import BufferPool
from s3pipe.errors import InputReadError, TruncatedInputError

logger = logging.getLogger(__name__)

# Back-off for non-blocking streams that cannot be polled with select()
POLL_INTERVAL = 0.05


@dataclass
class Chunk:
    """One contiguous slice of the input.

    Attributes:
        number: 1-based sequence number (the part number).
        buffer: Pooled buffer holding the bytes; only the first ``length``
            bytes are meaningful.
        length: Number of valid bytes in the buffer.
    """

    number: int
    buffer: bytearray
    length: int
    pool: BufferPool | None = field(default=None, repr=False)
    released: bool = field(default=False, repr=False)

    @property
    def data(self) -> memoryview:
        """Read-only view of the chunk's bytes (no copy)."""
        return memoryview(self.buffer)[: self.length].toreadonly()

    def release(self) -> None:
        """Return the buffer to its pool. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        if self.pool is not None:
            self.pool.release(self.buffer)


def _wait_readable(stream: BinaryIO) -> None:
    """Block until a non-blocking stream has data (or EOF) to read."""
    try:
        fd = stream.fileno()
        select.select([fd], [], [])
    except (AttributeError, OSError, ValueError):
        time.sleep(POLL_INTERVAL)


def _fill(stream: BinaryIO, view: memoryview) -> int:
    """Read into ``view`` until it is full or the stream reaches EOF.

    Returns:
        Number of bytes read; less than ``len(view)`` only at EOF.
    """
    filled = 0
    total = len(view)
    readinto = getattr(stream, "readinto", None)
    while filled < total:
        try:
            if readinto is not None:
                n = readinto(view[filled:])
            else:
                data = stream.read(total - filled)
                if data is None:
                    n = None
                else:
                    n = len(data)
                    view[filled : filled + n] = data
        except BlockingIOError:
            n = None
        if n is None:
            # Non-blocking stream with nothing ready
            _wait_readable(stream)
            continue
        if n == 0:
            break
        filled += n
    return filled


class ChunkReader:
    """Lazy, finite, non-restartable sequence of Chunks.

    Args:
        stream: Binary stream positioned at the first byte of the payload.
        input_size: Declared payload size in bytes.
        part_size: Size of every chunk except possibly the last.
        pool: Pool the chunk buffers are checked out from. Its buffers must
            be at least ``part_size`` bytes.
    """

    def __init__(self, stream: BinaryIO, input_size: int, part_size: int, pool: BufferPool) -> None:
        if input_size <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        if part_size <= 0:
            raise ValueError(f"part_size must be positive, got {part_size}")
        if pool.buffer_size < part_size:
            raise ValueError(
                f"pool buffers ({pool.buffer_size} bytes) are smaller than part_size ({part_size})"
            )
        self.stream = stream
        self.input_size = input_size
        self.part_size = part_size
        self.pool = pool
        self.bytes_read = 0
        self._started = False

    def __iter__(self) -> Iterator[Chunk]:
        if self._started:
            raise RuntimeError("ChunkReader can only be iterated once")
        self._started = True
        return self._chunks()

    def _chunks(self) -> Iterator[Chunk]:
        number = 0
        while self.bytes_read < self.input_size:
            want = min(self.part_size, self.input_size - self.bytes_read)
            buf = self.pool.acquire()
            try:
                got = _fill(self.stream, memoryview(buf)[:want])
            except OSError as err:
                self.pool.release(buf)
                raise InputReadError(self.bytes_read, err) from err
            except BaseException:
                self.pool.release(buf)
                raise

            if got < want:
                self.pool.release(buf)
                raise TruncatedInputError(self.bytes_read + got, self.input_size)

            number += 1
            self.bytes_read += got
            logger.debug(
                "Read chunk %d (%d bytes, %d/%d)", number, got, self.bytes_read, self.input_size
            )
            yield Chunk(number=number, buffer=buf, length=got, pool=self.pool)
