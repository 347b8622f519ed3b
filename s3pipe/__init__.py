"""s3pipe - Stream a one-pass byte stream into S3 multipart uploads with bounded memory."""

from s3pipe.cli import cli
from s3pipe.coordinator import UploadCoordinator
from s3pipe.upload import UploadPlan, UploadResult, plan_upload, stream_upload

__all__ = [
    "UploadCoordinator",
    "UploadPlan",
    "UploadResult",
    "cli",
    "plan_upload",
    "stream_upload",
]
