"""boto3-backed multipart client for S3 and S3-compatible endpoints.

Credential and region discovery follow boto3's own chain: explicit profile,
environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION),
shared config files, then instance/container roles. Retries are configured
on the botocore client and happen below the coordinator; s3pipe itself never
retries.

Basic Usage:
    from s3pipe.s3 import S3MultipartClient, create_s3_client

    client = S3MultipartClient(create_s3_client(profile="backup", dualstack=True))
    token = client.open_session("my-bucket", "dumps/db.sql")

Custom S3 Endpoints (MinIO, Ceph):
    s3 = create_s3_client(endpoint_url="https://minio.example.com:9000", region="us-east-1")
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import boto3
from botocore.config import Config

from s3pipe.errors import ConfigError
from s3pipe.storage import CompletedPart

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


def create_session(profile: str | None = None, region: str | None = None) -> boto3.session.Session:
    """Build a boto3 session for an optional named profile and region."""
    kwargs: dict[str, str] = {}
    if profile:
        kwargs["profile_name"] = profile
    if region:
        kwargs["region_name"] = region
    return boto3.session.Session(**kwargs)


def check_credentials(session: boto3.session.Session) -> tuple[bool, str]:
    """Check whether the session resolves any credentials.

    Args:
        session: boto3 session to inspect.

    Returns:
        Tuple of (credentials_found, hint_message)
    """
    if session.get_credentials() is not None:
        return True, ""

    hints = []
    hints.append("S3 credentials not found. To configure credentials:")
    hints.append("")
    hints.append("Option 1: Set environment variables")
    hints.append("  export AWS_ACCESS_KEY_ID=your_access_key")
    hints.append("  export AWS_SECRET_ACCESS_KEY=your_secret_key")
    hints.append("  export AWS_REGION=us-west-2")
    hints.append("")
    hints.append("Option 2: Use --profile with a profile from ~/.aws/credentials")
    hints.append("  s3pipe upload --profile myprofile ...")
    hints.append("")
    hints.append("Option 3: Configure AWS CLI")
    hints.append("  aws configure")
    return False, "\n".join(hints)


def create_s3_client(
    *,
    session: boto3.session.Session | None = None,
    profile: str | None = None,
    region: str | None = None,
    endpoint_url: str | None = None,
    dualstack: bool = False,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Any:
    """Create a low-level boto3 S3 client.

    Args:
        session: Existing boto3 session (built from profile/region if omitted).
        profile: AWS profile name.
        region: Region override.
        endpoint_url: Custom S3-compatible endpoint.
        dualstack: Use the IPv4/IPv6 dual-stack endpoints.
        max_attempts: Total attempts per request, handled by botocore.

    Returns:
        A botocore S3 client.

    Raises:
        ConfigError: If dual-stack is requested together with a custom endpoint.
    """
    if dualstack and endpoint_url:
        raise ConfigError(
            "Dual-stack endpoints cannot be combined with a custom endpoint URL",
            endpoint_url=endpoint_url,
        )
    if session is None:
        session = create_session(profile, region)

    config = Config(
        retries={"max_attempts": max_attempts, "mode": "standard"},
        s3={"use_dualstack_endpoint": dualstack} if dualstack else None,
    )
    logger.debug(
        "Creating S3 client (region=%s, endpoint=%s, dualstack=%s)",
        region or session.region_name,
        endpoint_url,
        dualstack,
    )
    return session.client("s3", region_name=region, endpoint_url=endpoint_url, config=config)


def _as_body(data: memoryview) -> bytes | bytearray:
    """Hand botocore a blob type without copying full parts.

    A view spanning its whole bytearray is passed as that bytearray; partial
    views (the short final part) are copied.
    """
    owner = data.obj
    if isinstance(owner, (bytes, bytearray)) and data.nbytes == len(owner):
        return owner
    return data.tobytes()


class S3MultipartClient:
    """MultipartClient over a boto3 S3 client.

    Args:
        s3: Low-level boto3 S3 client (thread-safe, shared by all workers).
    """

    def __init__(self, s3: Any) -> None:
        self.s3 = s3
        self._targets: dict[str, tuple[str, str]] = {}
        self._lock = threading.Lock()

    def _target(self, token: str) -> tuple[str, str]:
        with self._lock:
            try:
                return self._targets[token]
            except KeyError:
                raise KeyError(f"Unknown upload session: {token}") from None

    def open_session(self, bucket: str, key: str) -> str:
        response = self.s3.create_multipart_upload(Bucket=bucket, Key=key)
        token: str = response["UploadId"]
        with self._lock:
            self._targets[token] = (bucket, key)
        return token

    def upload_part(self, token: str, part_number: int, data: memoryview) -> str:
        bucket, key = self._target(token)
        response = self.s3.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=token,
            PartNumber=part_number,
            Body=_as_body(data),
        )
        etag: str = response["ETag"]
        return etag

    def complete_session(self, token: str, parts: list[CompletedPart]) -> str:
        bucket, key = self._target(token)
        response = self.s3.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=token,
            MultipartUpload={"Parts": [p.to_dict() for p in parts]},
        )
        with self._lock:
            self._targets.pop(token, None)
        location: str = response.get("Location") or f"s3://{bucket}/{key}"
        return location

    def abort_session(self, token: str) -> None:
        bucket, key = self._target(token)
        self.s3.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=token)
        with self._lock:
            self._targets.pop(token, None)
