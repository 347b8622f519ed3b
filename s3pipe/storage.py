"""MultipartClient protocol for pluggable storage backends.

The coordinator talks to object storage only through this protocol. It never
sees endpoints, signing or retries; those belong to the implementation (see
``s3pipe.s3.S3MultipartClient`` for the boto3-backed one).

Session tokens are opaque strings issued by ``open_session``. Implementations
that need the bucket and key again (S3 does) must remember them per token.

Example for alternative backends:
    class MyClient:
        def open_session(self, bucket: str, key: str) -> str: ...
        def upload_part(self, token: str, part_number: int, data: memoryview) -> str: ...
        def complete_session(self, token: str, parts: list[CompletedPart]) -> str: ...
        def abort_session(self, token: str) -> None: ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CompletedPart:
    """A successfully uploaded part.

    Attributes:
        number: 1-based part number.
        etag: Integrity tag the backend returned for the part.
    """

    number: int
    etag: str

    def to_dict(self) -> dict[str, int | str]:
        """Manifest entry in the shape S3's CompleteMultipartUpload expects."""
        return {"PartNumber": self.number, "ETag": self.etag}


@runtime_checkable
class MultipartClient(Protocol):
    """Protocol for backends speaking create / upload-part / complete / abort.

    Every method raises on failure; the exception type is backend specific
    and is wrapped by the caller.
    """

    def open_session(self, bucket: str, key: str) -> str:
        """Create a multipart session for one object.

        Returns:
            Opaque session token.
        """
        ...

    def upload_part(self, token: str, part_number: int, data: memoryview) -> str:
        """Upload one part.

        Args:
            token: Session token from open_session.
            part_number: 1-based part number.
            data: Part bytes. Only valid for the duration of the call.

        Returns:
            The part's integrity tag (ETag).
        """
        ...

    def complete_session(self, token: str, parts: list[CompletedPart]) -> str:
        """Assemble the object from its parts.

        Args:
            token: Session token from open_session.
            parts: Parts sorted by strictly increasing part number.

        Returns:
            Location of the finished object.
        """
        ...

    def abort_session(self, token: str) -> None:
        """Discard the session and every part uploaded to it."""
        ...
