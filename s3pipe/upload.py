"""Stream a byte stream of known length into an S3 object.

This is the library entry point behind ``s3pipe upload``. It resolves the
part size, builds the storage client (unless one is given), runs an
UploadCoordinator and reports progress through ``s3pipe.output``.

Basic Usage:
    import sys
    from s3pipe.upload import stream_upload

    result = stream_upload(
        sys.stdin.buffer,
        "s3://mybucket/backups/db.dump",
        size=10 * 1024**3,
        concurrency=4,
    )
    print(result.location)

Planning without uploading:
    from s3pipe.upload import plan_upload

    plan = plan_upload("s3://mybucket/big.tar", size=200 * 1024**3, part_size_mb=64)
    print(plan.part_count, plan.peak_buffer_bytes)

Custom S3 Endpoints (MinIO):
    result = stream_upload(
        stream,
        "s3://mybucket/data.bin",
        size=size,
        endpoint_url="http://minio.local:9000",
        region="us-east-1",
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, BinaryIO

from s3pipe.constants import MIB
from s3pipe.coordinator import UploadCoordinator
from s3pipe.output import detail, info, success
from s3pipe.s3 import S3MultipartClient, create_s3_client
from s3pipe.sizing import buffer_pool_capacity, choose_part_size, part_count
from s3pipe.storage import MultipartClient
from s3pipe.target import parse_target

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class UploadPlan:
    """How an upload will be split, computed without touching the backend.

    Attributes:
        bucket: Target bucket.
        key: Target object key.
        input_size: Declared input size in bytes.
        part_size: Part size in bytes.
        part_count: Number of parts.
        concurrency: Parallel part uploads.
        buffers: Maximum number of part buffers alive at once.
    """

    bucket: str
    key: str
    input_size: int
    part_size: int
    part_count: int
    concurrency: int
    buffers: int

    @property
    def peak_buffer_bytes(self) -> int:
        return self.buffers * self.part_size

    @property
    def last_part_size(self) -> int:
        return self.input_size % self.part_size or self.part_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "input_size": self.input_size,
            "part_size": self.part_size,
            "part_count": self.part_count,
            "last_part_size": self.last_part_size,
            "concurrency": self.concurrency,
            "buffers": self.buffers,
            "peak_buffer_bytes": self.peak_buffer_bytes,
        }


@dataclass
class UploadResult:
    """Result of a successful upload.

    Failed uploads raise instead; there is no partial result.

    Attributes:
        location: Location of the finished object as reported by the backend.
        bucket: Target bucket.
        key: Target object key.
        part_size: Part size in bytes.
        part_count: Number of parts uploaded.
        total_bytes: Bytes uploaded (equals the declared size).
        elapsed_seconds: Wall-clock duration of the upload.
    """

    location: str
    bucket: str
    key: str
    part_size: int
    part_count: int
    total_bytes: int
    elapsed_seconds: float

    @property
    def speed_mbps(self) -> float:
        size_mb = self.total_bytes / MIB
        return size_mb / self.elapsed_seconds if self.elapsed_seconds > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "bucket": self.bucket,
            "key": self.key,
            "part_size": self.part_size,
            "part_count": self.part_count,
            "total_bytes": self.total_bytes,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


# =============================================================================
# Planning
# =============================================================================


def plan_upload(
    destination: str,
    *,
    size: int,
    part_size_mb: int | None = None,
    memory_budget_mb: int | None = None,
    auto_part_size: bool = False,
    concurrency: int = 1,
) -> UploadPlan:
    """Resolve target and part size for an upload.

    Args:
        destination: Target URL (s3://bucket/key).
        size: Declared input size in bytes.
        part_size_mb: Explicit part size in MiB.
        memory_budget_mb: Memory budget in MiB for memory-derived sizing.
        auto_part_size: Derive the part size from available system memory.
        concurrency: Parallel part uploads.

    Returns:
        UploadPlan describing the split.

    Raises:
        ConfigError: If the target, size, part size or concurrency is invalid.
    """
    target = parse_target(destination)
    buffers = buffer_pool_capacity(concurrency)
    part_size = choose_part_size(
        size,
        part_size=part_size_mb * MIB if part_size_mb is not None else None,
        memory_budget=memory_budget_mb * MIB if memory_budget_mb is not None else None,
        use_available_memory=auto_part_size,
        concurrency=concurrency,
    )
    return UploadPlan(
        bucket=target.bucket,
        key=target.key,
        input_size=size,
        part_size=part_size,
        part_count=part_count(size, part_size),
        concurrency=concurrency,
        buffers=buffers,
    )


# =============================================================================
# Upload
# =============================================================================


def stream_upload(
    stream: BinaryIO,
    destination: str,
    *,
    size: int,
    part_size_mb: int | None = None,
    memory_budget_mb: int | None = None,
    auto_part_size: bool = False,
    concurrency: int = 1,
    client: MultipartClient | None = None,
    profile: str | None = None,
    region: str | None = None,
    endpoint_url: str | None = None,
    dualstack: bool = False,
    quiet: bool = False,
) -> UploadResult:
    """Upload exactly ``size`` bytes from ``stream`` to ``destination``.

    Args:
        stream: One-pass binary stream (e.g. ``sys.stdin.buffer``).
        destination: Target URL (s3://bucket/key).
        size: Declared input size in bytes. Authoritative: excess stream
            bytes are ignored, a short stream is an error.
        part_size_mb: Explicit part size in MiB (minimum 5).
        memory_budget_mb: Memory budget in MiB for memory-derived sizing.
        auto_part_size: Derive the part size from available system memory.
        concurrency: Parallel part uploads (1 = sequential).
        client: Storage client; a boto3-backed one is built when omitted.
        profile: AWS profile name (only used when building the client).
        region: AWS region (only used when building the client).
        endpoint_url: Custom S3-compatible endpoint (only used when building the client).
        dualstack: Use dual-stack endpoints (only used when building the client).
        quiet: Suppress progress messages.

    Returns:
        UploadResult for the completed object.

    Raises:
        ConfigError: Invalid arguments; nothing was sent to the backend.
        SessionError: The session could not be opened or completed.
        InputError: The stream was short or unreadable; the session was aborted.
        UploadError: A part upload failed; the session was aborted.
    """
    plan = plan_upload(
        destination,
        size=size,
        part_size_mb=part_size_mb,
        memory_budget_mb=memory_budget_mb,
        auto_part_size=auto_part_size,
        concurrency=concurrency,
    )

    if client is None:
        client = S3MultipartClient(
            create_s3_client(
                profile=profile, region=region, endpoint_url=endpoint_url, dualstack=dualstack
            )
        )

    coordinator = UploadCoordinator(
        client,
        plan.bucket,
        plan.key,
        input_size=plan.input_size,
        part_size=plan.part_size,
        concurrency=plan.concurrency,
    )

    size_mb = size / MIB
    if not quiet:
        info(f"Uploading {size_mb:.2f} MB -> s3://{plan.bucket}/{plan.key}")
        detail(
            f"{plan.part_count} part(s) of {plan.part_size / MIB:.0f} MB, "
            f"concurrency {plan.concurrency}, up to {plan.peak_buffer_bytes / MIB:.0f} MB buffered"
        )

    start_time = time.time()
    location = coordinator.run(stream)
    elapsed = time.time() - start_time

    result = UploadResult(
        location=location,
        bucket=plan.bucket,
        key=plan.key,
        part_size=plan.part_size,
        part_count=plan.part_count,
        total_bytes=size,
        elapsed_seconds=elapsed,
    )
    if not quiet:
        success(f"Upload complete ({result.speed_mbps:.2f} MB/s)")
    return result
