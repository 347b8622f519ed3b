"""Upload a single chunk as a single numbered part."""

from __future__ import annotations

import logging
import threading
import time

from s3pipe.errors import UploadCancelledError, UploadError
from s3pipe.reader import Chunk
from s3pipe.session import UploadSession
from s3pipe.storage import CompletedPart, MultipartClient

logger = logging.getLogger(__name__)


class PartUploader:
    """Stateless part uploader.

    Performs no retries: one failed call fails the whole session. The chunk's
    buffer goes back to its pool before ``upload`` returns or raises.
    """

    def __init__(self, client: MultipartClient) -> None:
        self.client = client

    def upload(
        self,
        session: UploadSession,
        chunk: Chunk,
        cancel_event: threading.Event | None = None,
    ) -> CompletedPart:
        """Upload ``chunk`` to ``session``.

        Raises:
            UploadError: If the backend call fails.
            UploadCancelledError: If the session was cancelled before the
                call started.
        """
        try:
            if cancel_event is not None and cancel_event.is_set():
                raise UploadCancelledError(f"part {chunk.number} skipped, session cancelled")

            start = time.monotonic()
            try:
                etag = self.client.upload_part(session.token, chunk.number, chunk.data)
            except Exception as err:
                raise UploadError(chunk.number, err) from err

            elapsed = time.monotonic() - start
            logger.debug(
                "Uploaded part %d/%d (%d bytes, %.2fs)",
                chunk.number,
                session.part_count,
                chunk.length,
                elapsed,
            )
            return CompletedPart(number=chunk.number, etag=etag)
        finally:
            chunk.release()
