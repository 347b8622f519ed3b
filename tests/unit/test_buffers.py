"""Unit tests for BufferPool."""

from __future__ import annotations

import threading
import time

import pytest

from s3pipe.buffers import BufferPool
from s3pipe.errors import UploadCancelledError


class TestBufferPool:
    """Tests for allocation, reuse and blocking behaviour."""

    @pytest.mark.unit
    def test_buffers_allocated_lazily(self) -> None:
        pool = BufferPool(buffer_size=16, capacity=3)

        assert pool.live == 0
        buf = pool.acquire()

        assert pool.live == 1
        assert len(buf) == 16
        assert pool.in_use == 1

    @pytest.mark.unit
    def test_released_buffer_is_reused(self) -> None:
        pool = BufferPool(buffer_size=16, capacity=2)

        first = pool.acquire()
        pool.release(first)
        second = pool.acquire()

        assert second is first
        assert pool.live == 1

    @pytest.mark.unit
    def test_never_allocates_past_capacity(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=2)
        held = [pool.acquire(), pool.acquire()]
        for buf in held:
            pool.release(buf)

        for _ in range(10):
            buf = pool.acquire()
            pool.release(buf)

        assert pool.live == 2
        assert pool.in_use == 0

    @pytest.mark.unit
    def test_acquire_blocks_until_release(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=1)
        held = pool.acquire()
        acquired = threading.Event()

        def waiter() -> None:
            pool.acquire()
            acquired.set()

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        assert not acquired.is_set()

        pool.release(held)
        thread.join(timeout=2)

        assert acquired.is_set()
        assert pool.live == 1

    @pytest.mark.unit
    def test_cancel_wakes_blocked_acquire(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=1)
        held = pool.acquire()
        errors: list[BaseException] = []

        def waiter() -> None:
            try:
                pool.acquire()
            except UploadCancelledError as err:
                errors.append(err)

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        pool.cancel()
        thread.join(timeout=2)

        assert len(errors) == 1
        assert pool.cancelled
        # In-flight holders can still return their buffers
        pool.release(held)
        assert pool.in_use == 0

    @pytest.mark.unit
    def test_acquire_after_cancel_raises(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=2)
        pool.cancel()

        with pytest.raises(UploadCancelledError):
            pool.acquire()

    @pytest.mark.unit
    def test_release_foreign_buffer_rejected(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=1)

        with pytest.raises(ValueError, match="not checked out"):
            pool.release(bytearray(8))

    @pytest.mark.unit
    def test_double_release_rejected(self) -> None:
        pool = BufferPool(buffer_size=8, capacity=1)
        buf = pool.acquire()
        pool.release(buf)

        with pytest.raises(ValueError):
            pool.release(buf)

    @pytest.mark.unit
    @pytest.mark.parametrize(("buffer_size", "capacity"), [(0, 1), (8, 0)])
    def test_invalid_arguments(self, buffer_size: int, capacity: int) -> None:
        with pytest.raises(ValueError):
            BufferPool(buffer_size=buffer_size, capacity=capacity)
