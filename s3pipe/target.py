"""Parse upload targets of the form ``scheme://bucket/key``."""

from __future__ import annotations

from dataclasses import dataclass

from s3pipe.constants import SUPPORTED_SCHEMES
from s3pipe.errors import InvalidTargetError


@dataclass(frozen=True)
class UploadTarget:
    """Destination object of an upload.

    Attributes:
        bucket: Bucket name.
        key: Object key inside the bucket (never empty).
        scheme: URL scheme the target was given with.
    """

    bucket: str
    key: str
    scheme: str = "s3"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.key}"


def parse_target(url: str) -> UploadTarget:
    """Split a target URL into bucket and key.

    The bucket is everything between ``://`` and the next ``/``; the key is
    the rest of the string, kept verbatim (nested keys keep their slashes).

    Examples:
        s3://bucket/key -> UploadTarget("bucket", "key")
        s3://bucket/dir/file.txt -> UploadTarget("bucket", "dir/file.txt")

    Args:
        url: Target URL.

    Returns:
        Parsed UploadTarget.

    Raises:
        InvalidTargetError: If the scheme, bucket or key is missing, or the
            scheme is not supported.
    """
    scheme, sep, rest = url.partition("://")
    if not sep or not scheme:
        raise InvalidTargetError(url, "missing scheme (expected s3://bucket/key)")
    if scheme not in SUPPORTED_SCHEMES:
        supported = ", ".join(f"{s}://" for s in sorted(SUPPORTED_SCHEMES))
        raise InvalidTargetError(url, f"unsupported scheme '{scheme}' (supported: {supported})")

    bucket, _, key = rest.partition("/")
    if not bucket:
        raise InvalidTargetError(url, "missing bucket")
    if not key:
        raise InvalidTargetError(url, "missing key")

    return UploadTarget(bucket=bucket, key=key, scheme=scheme)
