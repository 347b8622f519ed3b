"""Multipart session coordinator.

Owns one upload from start to finish: opens the session, pumps chunks from
the ChunkReader through PartUploaders, records completed parts by position,
and either completes the session with the ordered manifest or aborts it.

Two pipelines, chosen by ``concurrency``:

- Sequential (``concurrency == 1``): read a chunk, upload it, repeat. One
  buffer, no threads.
- Concurrent (``concurrency > 1``): the reader runs on the calling thread and
  submits chunks to a ThreadPoolExecutor with ``concurrency`` workers. The
  buffer pool (``concurrency + 1`` buffers) is the bounded work queue: the
  reader blocks until a worker hands a buffer back. Each future's completion
  callback records the part into the manifest.

Failure handling:
    The first InputError, UploadError or completion failure after the session
    is open cancels the remaining work and triggers exactly one abort call.
    A failed abort is logged as a warning and never replaces the original
    error, which is what ``run()`` raises. Errors before the session opens
    propagate without any cleanup. An external ``abort()`` stops the pipeline
    and is honoured only until completion starts.

Usage:
    coordinator = UploadCoordinator(
        client, "bucket", "key", input_size=size, part_size=part_size, concurrency=4
    )
    location = coordinator.run(sys.stdin.buffer)
"""

from __future__ import annotations

import functools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import BinaryIO

from s3pipe.buffers import BufferPool
from s3pipe.errors import (
    ConfigError,
    SessionAbortedError,
    SessionCompleteError,
    SessionOpenError,
    UploadCancelledError,
)
from s3pipe.reader import Chunk, ChunkReader
from s3pipe.session import PartManifest, SessionState, UploadSession
from s3pipe.sizing import buffer_pool_capacity, part_count
from s3pipe.storage import CompletedPart, MultipartClient
from s3pipe.uploader import PartUploader

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Drives a single multipart upload. Not reusable across uploads.

    Args:
        client: Storage backend.
        bucket: Target bucket.
        key: Target object key.
        input_size: Declared input size in bytes (must be positive).
        part_size: Part size in bytes.
        concurrency: Number of parallel part uploads (1 = sequential).
        pool: Buffer pool to draw chunk buffers from. Defaults to a pool
            sized for ``concurrency``.

    Raises:
        ConfigError: If input_size, part_size or concurrency is invalid.
    """

    def __init__(
        self,
        client: MultipartClient,
        bucket: str,
        key: str,
        *,
        input_size: int,
        part_size: int,
        concurrency: int = 1,
        pool: BufferPool | None = None,
    ) -> None:
        if input_size <= 0:
            raise ConfigError(
                f"Input size must be positive, got {input_size}", input_size=input_size
            )
        if part_size <= 0:
            raise ConfigError(f"Part size must be positive, got {part_size}", part_size=part_size)
        if concurrency < 1:
            raise ConfigError(
                f"Concurrency must be at least 1, got {concurrency}", concurrency=concurrency
            )

        self.client = client
        self.bucket = bucket
        self.key = key
        self.input_size = input_size
        self.part_size = part_size
        self.concurrency = concurrency
        self.part_count = part_count(input_size, part_size)
        self.pool = pool or BufferPool(part_size, buffer_pool_capacity(concurrency))

        self.session: UploadSession | None = None
        self.manifest = PartManifest(self.part_count)
        self.abort_error: Exception | None = None

        self._state = SessionState.IDLE
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._failure: BaseException | None = None
        self._abort_attempted = False
        self._uploader = PartUploader(client)

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def _transition(self, state: SessionState) -> None:
        with self._lock:
            logger.debug("Session %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self, stream: BinaryIO) -> str:
        """Upload ``input_size`` bytes from ``stream``.

        Returns:
            Location of the completed object.

        Raises:
            SessionOpenError: If the session could not be created.
            InputError: If the stream is short or unreadable (session aborted).
            UploadError: If a part upload failed (session aborted).
            SessionCompleteError: If completion failed (session aborted).
            SessionAbortedError: If ``abort()`` was called before completion.
            RuntimeError: If the coordinator was already used.
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                raise RuntimeError("UploadCoordinator can only run once")
            self._state = SessionState.OPENING

        session = self._open()
        try:
            if self.concurrency == 1:
                self._pump_sequential(session, stream)
            else:
                self._pump_concurrent(session, stream)
            location = self._complete(session)
        except UploadCancelledError as err:
            self._abort()
            raise SessionAbortedError(self.bucket, self.key) from err
        except BaseException:
            self._abort()
            raise

        self._transition(SessionState.DONE)
        logger.debug("Upload complete: %s (%d parts)", location, self.part_count)
        return location

    def _open(self) -> UploadSession:
        try:
            token = self.client.open_session(self.bucket, self.key)
        except Exception as err:
            # Nothing exists remotely yet, so there is nothing to abort
            self._transition(SessionState.ABORTED)
            raise SessionOpenError(self.bucket, self.key, err) from err

        self.session = UploadSession(
            bucket=self.bucket,
            key=self.key,
            token=token,
            part_size=self.part_size,
            input_size=self.input_size,
        )
        self._transition(SessionState.ACTIVE)
        logger.debug(
            "Opened session %s for s3://%s/%s (%d parts of %d bytes)",
            token,
            self.bucket,
            self.key,
            self.part_count,
            self.part_size,
        )
        return self.session

    def _complete(self, session: UploadSession) -> str:
        with self._lock:
            if self._state is not SessionState.ACTIVE or self._abort_attempted:
                raise UploadCancelledError("session was aborted before completion")
            logger.debug("Session %s -> %s", self._state.value, SessionState.COMPLETING.value)
            self._state = SessionState.COMPLETING

        if not self.manifest.is_complete:
            raise RuntimeError(
                f"only {self.manifest.completed} of {self.part_count} parts were recorded"
            )
        parts = self.manifest.ordered()
        try:
            return self.client.complete_session(session.token, parts)
        except Exception as err:
            raise SessionCompleteError(self.bucket, self.key, err) from err

    def abort(self) -> bool:
        """Abort the open session, at most once.

        Safe to call from any thread and any number of times. Only the first
        call after the session opened reaches the backend; later calls (and
        calls before a session exists, or once completion has started) do
        nothing. A running ``run()`` then raises SessionAbortedError.

        Returns:
            True if this call issued the abort request.
        """
        return self._abort(external=True)

    def _abort(self, *, external: bool = False) -> bool:
        with self._lock:
            if (
                self.session is None
                or self._abort_attempted
                or self._state is SessionState.DONE
                or (external and self._state is SessionState.COMPLETING)
            ):
                return False
            self._abort_attempted = True
            self._state = SessionState.ABORTING

        self._cancel.set()
        self.pool.cancel()

        try:
            self.client.abort_session(self.session.token)
        except Exception as err:
            self.abort_error = err
            logger.warning(
                "Failed to abort multipart upload %s for s3://%s/%s: %s",
                self.session.token,
                self.bucket,
                self.key,
                err,
            )
        else:
            logger.info("Aborted multipart upload for s3://%s/%s", self.bucket, self.key)

        self._transition(SessionState.ABORTED)
        return True

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def _pump_sequential(self, session: UploadSession, stream: BinaryIO) -> None:
        reader = ChunkReader(stream, self.input_size, self.part_size, self.pool)
        for chunk in reader:
            if self._cancel.is_set():
                chunk.release()
                break
            self.manifest.record(self._uploader.upload(session, chunk, self._cancel))
        if self._cancel.is_set():
            raise UploadCancelledError("upload was aborted before all parts were sent")

    def _pump_concurrent(self, session: UploadSession, stream: BinaryIO) -> None:
        reader = ChunkReader(stream, self.input_size, self.part_size, self.pool)
        pending: set[Future[CompletedPart]] = set()

        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="s3pipe-part"
        ) as executor:
            try:
                for chunk in reader:
                    if self._cancel.is_set():
                        chunk.release()
                        break
                    future = executor.submit(self._uploader.upload, session, chunk, self._cancel)
                    future.add_done_callback(functools.partial(self._collect, chunk))
                    pending = {f for f in pending if not f.done()}
                    pending.add(future)
            except UploadCancelledError:
                # A worker failed while the reader waited for a buffer
                pass
            except BaseException as err:
                self._fail(err)
            finally:
                if self._cancel.is_set():
                    for future in pending:
                        future.cancel()

        if self._failure is not None:
            raise self._failure
        if self._cancel.is_set():
            raise UploadCancelledError("upload was aborted before all parts were sent")

    def _collect(self, chunk: Chunk, future: Future[CompletedPart]) -> None:
        """Completion callback, runs on the worker thread (or the submitter)."""
        if future.cancelled():
            chunk.release()
            return

        err = future.exception()
        if err is not None:
            if not isinstance(err, UploadCancelledError):
                self._fail(err)
            return

        if self._cancel.is_set():
            # Results that land after cancellation are discarded
            return
        try:
            self.manifest.record(future.result())
        except ValueError as record_err:
            self._fail(record_err)

    def _fail(self, err: BaseException) -> None:
        """Remember the first failure and stop the pipeline."""
        with self._lock:
            if self._failure is not None:
                return
            self._failure = err
        logger.debug("Pipeline failed: %s", err)
        self._cancel.set()
        self.pool.cancel()
