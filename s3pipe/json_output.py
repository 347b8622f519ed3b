"""JSON output envelope for ``--format json``.

Every command prints exactly one envelope on stdout:

    {
        "success": true|false,
        "command": "upload",
        "data": { ... },
        "errors": [ ... ]  # Only present when success=false
    }

Usage:
    from s3pipe.json_output import ErrorDetail, error_envelope, success_envelope

    click.echo(success_envelope("upload", result.to_dict()).to_json())

    err = ErrorDetail.from_exception(exc)
    click.echo(error_envelope("upload", [err]).to_json())
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from s3pipe.errors import S3PipeError


@dataclass
class ErrorDetail:
    """One entry of the errors array.

    Attributes:
        type: Error class name (e.g., "TruncatedInputError")
        message: Human-readable error description
        code: Structured error code for s3pipe errors (e.g., "S3P-INP001")
    """

    type: str
    message: str
    code: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorDetail:
        if isinstance(exc, S3PipeError):
            return cls(type=type(exc).__name__, message=exc.message, code=exc.code)
        return cls(type=type(exc).__name__, message=str(exc))

    def to_dict(self) -> dict[str, str]:
        result = {"type": self.type, "message": self.message}
        if self.code is not None:
            result["code"] = self.code
        return result


@dataclass
class OutputEnvelope:
    """Wrapper structure for all JSON command output.

    Attributes:
        success: True if the command completed without errors
        command: Name of the command that produced this output
        data: Command-specific payload
        errors: Error objects; present only when success=False
    """

    success: bool
    command: str
    data: dict[str, Any] | None
    errors: list[ErrorDetail] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "command": self.command,
            "data": self.data,
        }
        if self.errors is not None:
            result["errors"] = [e.to_dict() for e in self.errors]
        return result

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def success_envelope(command: str, data: dict[str, Any]) -> OutputEnvelope:
    """Envelope with success=True and no errors."""
    return OutputEnvelope(success=True, command=command, data=data)


def error_envelope(
    command: str,
    errors: list[ErrorDetail],
    *,
    data: dict[str, Any] | None = None,
) -> OutputEnvelope:
    """Envelope with success=False.

    Args:
        command: Name of the command
        errors: Errors to report
        data: Optional partial data (default: empty dict)
    """
    return OutputEnvelope(
        success=False,
        command=command,
        data=data if data is not None else {},
        errors=errors,
    )
