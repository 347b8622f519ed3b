"""Shared pytest fixtures for s3pipe tests."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from s3pipe.storage import CompletedPart

# =============================================================================
# In-memory storage backend
# =============================================================================


class FakeMultipartClient:
    """MultipartClient that keeps sessions and parts in memory.

    Failures, delays and callbacks are injected per part number. Every call is
    recorded so tests can assert on the exact backend traffic.
    """

    def __init__(
        self,
        *,
        fail_open: Exception | None = None,
        fail_parts: dict[int, Exception] | None = None,
        fail_complete: Exception | None = None,
        fail_abort: Exception | None = None,
        part_delay: Callable[[int], float] | None = None,
        on_part: Callable[[int], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self.fail_open = fail_open
        self.fail_parts = fail_parts or {}
        self.fail_complete = fail_complete
        self.fail_abort = fail_abort
        self.part_delay = part_delay
        self.on_part = on_part
        self.on_complete = on_complete

        self.sessions: dict[str, tuple[str, str]] = {}
        self.parts: dict[int, bytes] = {}
        self.part_attempts: list[int] = []
        self.completion_order: list[int] = []
        self.manifests: list[list[CompletedPart]] = []
        self.objects: dict[tuple[str, str], bytes] = {}
        self.open_calls = 0
        self.complete_calls = 0
        self.abort_calls = 0
        self.max_in_flight = 0

        self._in_flight = 0
        self._lock = threading.Lock()

    def open_session(self, bucket: str, key: str) -> str:
        self.open_calls += 1
        if self.fail_open is not None:
            raise self.fail_open
        token = f"upload-{len(self.sessions) + 1}"
        self.sessions[token] = (bucket, key)
        return token

    def upload_part(self, token: str, part_number: int, data: memoryview) -> str:
        assert token in self.sessions
        with self._lock:
            self.part_attempts.append(part_number)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.on_part is not None:
                self.on_part(part_number)
            if self.part_delay is not None:
                time.sleep(self.part_delay(part_number))
            if part_number in self.fail_parts:
                raise self.fail_parts[part_number]
            with self._lock:
                self.parts[part_number] = bytes(data)
                self.completion_order.append(part_number)
            return f'"etag-{part_number}"'
        finally:
            with self._lock:
                self._in_flight -= 1

    def complete_session(self, token: str, parts: list[CompletedPart]) -> str:
        self.complete_calls += 1
        self.manifests.append(list(parts))
        if self.on_complete is not None:
            self.on_complete()
        if self.fail_complete is not None:
            raise self.fail_complete
        bucket, key = self.sessions[token]
        self.objects[(bucket, key)] = b"".join(self.parts[p.number] for p in parts)
        return f"https://{bucket}.s3.amazonaws.com/{key}"

    def abort_session(self, token: str) -> None:
        self.abort_calls += 1
        if self.fail_abort is not None:
            raise self.fail_abort
        self.sessions.pop(token, None)


@pytest.fixture
def fake_client() -> FakeMultipartClient:
    """A fresh in-memory backend with no injected failures."""
    return FakeMultipartClient()


@pytest.fixture
def make_client() -> Callable[..., FakeMultipartClient]:
    """Factory for in-memory backends with injected failures or delays."""
    return FakeMultipartClient


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the config file at a temp path and clear S3PIPE_* variables."""
    import os

    for name in list(os.environ):
        if name.startswith("S3PIPE_"):
            monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "s3pipe-config" / "config.yaml"
    monkeypatch.setenv("S3PIPE_CONFIG", str(config_path))
    yield config_path


@pytest.fixture
def payload() -> Callable[[int], bytes]:
    """Deterministic, non-repeating-ish test payload of a given size."""

    def _make(size: int) -> bytes:
        pattern = bytes(range(251))
        repeats = size // len(pattern) + 1
        return (pattern * repeats)[:size]

    return _make
