"""Structured error codes for s3pipe.

All errors follow the format S3P-{category}{number}:
- S3P-CFG*: Configuration errors (raised before any remote call)
- S3P-INP*: Input stream errors (trigger an abort once a session is open)
- S3P-UPL*: Part upload errors (trigger an abort)
- S3P-SES*: Session open/complete/abort errors
"""

from __future__ import annotations

from typing import Any


class S3PipeError(Exception):
    """Base class for all s3pipe errors.

    All errors have:
    - code: Structured error code (e.g., S3P-CFG001)
    - message: Human-readable error message
    """

    code: str = "S3P-000"

    # Reserved attribute names that cannot be overwritten by context
    _RESERVED_ATTRS = frozenset({"code", "message", "context", "args"})

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize an s3pipe error.

        Args:
            message: Human-readable error message.
            **context: Additional context stored as error attributes.
                Reserved keys (code, message, context, args) are ignored.
        """
        self.message = message
        self.context = context
        for key, value in context.items():
            if key not in self._RESERVED_ATTRS:
                setattr(self, key, value)
        super().__init__(f"[{self.code}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to JSON-serializable dict."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# Configuration Errors (S3P-CFG*)
class ConfigError(S3PipeError):
    """Invalid or missing size, concurrency or target arguments."""

    code = "S3P-CFG000"


class InvalidTargetError(ConfigError):
    """Raised when an upload target URL cannot be parsed.

    Error code: S3P-CFG001
    """

    code = "S3P-CFG001"

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Invalid target '{url}': {reason}", url=url, reason=reason)


class InvalidPartSizeError(ConfigError):
    """Raised when a requested part size is outside the backend limits.

    Error code: S3P-CFG002
    """

    code = "S3P-CFG002"

    def __init__(self, part_size: int, reason: str) -> None:
        super().__init__(
            f"Invalid part size {part_size} bytes: {reason}", part_size=part_size, reason=reason
        )


class TooManyPartsError(ConfigError):
    """Raised when the input would need more parts than the backend accepts.

    Error code: S3P-CFG003
    """

    code = "S3P-CFG003"

    def __init__(self, input_size: int, part_size: int, part_count: int, max_parts: int) -> None:
        minimum = -(-input_size // max_parts)
        super().__init__(
            f"{input_size} bytes at {part_size} bytes per part needs {part_count} parts "
            f"(limit {max_parts}); use a part size of at least {minimum} bytes",
            input_size=input_size,
            part_size=part_size,
            part_count=part_count,
            max_parts=max_parts,
        )


class MemoryEstimateError(ConfigError):
    """Raised when no part size can be derived from the memory budget.

    Error code: S3P-CFG004
    """

    code = "S3P-CFG004"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Cannot derive part size from memory: {reason}", reason=reason)


class ConfigParseError(ConfigError):
    """Raised when a configuration file cannot be parsed.

    Error code: S3P-CFG005
    """

    code = "S3P-CFG005"

    def __init__(self, path: str, parse_error: str) -> None:
        super().__init__(
            f"Failed to parse config file {path}: {parse_error}",
            path=path,
            parse_error=parse_error,
        )


# Input Errors (S3P-INP*)
class InputError(S3PipeError):
    """Base class for input stream errors."""

    code = "S3P-INP000"


class TruncatedInputError(InputError):
    """Raised when the stream ends before the declared size was read.

    Error code: S3P-INP001
    """

    code = "S3P-INP001"

    def __init__(self, bytes_read: int, expected: int) -> None:
        super().__init__(
            f"Input ended after {bytes_read} bytes, expected {expected}",
            bytes_read=bytes_read,
            expected=expected,
        )


class InputReadError(InputError):
    """Raised when reading the input stream fails.

    Error code: S3P-INP002
    """

    code = "S3P-INP002"

    def __init__(self, bytes_read: int, original_error: Exception) -> None:
        super().__init__(
            f"Failed to read input after {bytes_read} bytes: {original_error}",
            bytes_read=bytes_read,
            original_error_type=type(original_error).__name__,
            original_error_message=str(original_error),
        )
        self.original_exception = original_error


# Upload Errors (S3P-UPL*)
class UploadError(S3PipeError):
    """Raised when the backend rejects or fails a part upload.

    Error code: S3P-UPL001
    """

    code = "S3P-UPL001"

    def __init__(self, part_number: int, original_error: Exception) -> None:
        super().__init__(
            f"Failed to upload part {part_number}: {original_error}",
            part_number=part_number,
            original_error_type=type(original_error).__name__,
            original_error_message=str(original_error),
        )
        # Keep original exception for programmatic access (not serialized)
        self.original_exception = original_error


# Session Errors (S3P-SES*)
class SessionError(S3PipeError):
    """Base class for multipart session errors."""

    code = "S3P-SES000"


class SessionOpenError(SessionError):
    """Raised when the backend cannot create a multipart session.

    Error code: S3P-SES001
    """

    code = "S3P-SES001"

    def __init__(self, bucket: str, key: str, original_error: Exception) -> None:
        super().__init__(
            f"Failed to open upload session for s3://{bucket}/{key}: {original_error}",
            bucket=bucket,
            key=key,
            original_error_type=type(original_error).__name__,
            original_error_message=str(original_error),
        )
        self.original_exception = original_error


class SessionCompleteError(SessionError):
    """Raised when the backend refuses to complete a multipart session.

    Error code: S3P-SES002
    """

    code = "S3P-SES002"

    def __init__(self, bucket: str, key: str, original_error: Exception) -> None:
        super().__init__(
            f"Failed to complete upload session for s3://{bucket}/{key}: {original_error}",
            bucket=bucket,
            key=key,
            original_error_type=type(original_error).__name__,
            original_error_message=str(original_error),
        )
        self.original_exception = original_error


class SessionAbortedError(SessionError):
    """Raised when the session was aborted from outside before it could complete.

    Error code: S3P-SES003
    """

    code = "S3P-SES003"

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(
            f"Upload session for s3://{bucket}/{key} was aborted before completion",
            bucket=bucket,
            key=key,
        )


class UploadCancelledError(Exception):
    """Signals a worker or the reader that the session is being torn down.

    Internal to the pipeline; never reported to the user.
    """
