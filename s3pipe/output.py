"""Styled terminal output for s3pipe.

User-facing messages go through these helpers so every command prints the
same symbols and colours:

    success("Upload complete (84.12 MB/s)")
    info("Uploading 1024.00 MB -> s3://bucket/key")
    warn("Failed to abort multipart upload")
    error("Input ended after 8388608 bytes, expected 10485760")
    detail("16 part(s) of 64 MB")

Progress and errors go to stderr so that stdout stays clean for
``--format json`` envelopes and for shell pipelines.

Library modules do not print; they log through ``logging.getLogger(__name__)``.
``configure_logging()`` routes those records to the terminal with the same
styles.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import click

_STYLES = {
    "success": "green",
    "info": "blue",
    "warn": "yellow",
    "error": "red",
    "detail": "bright_black",
}

_PREFIXES = {
    "success": "✓",  # checkmark
    "info": "→",  # arrow
    "warn": "⚠",  # warning
    "error": "✗",  # X
    "detail": " ",
}


def _output(message: str, style: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    fg = _STYLES[style]
    prefix = click.style(_PREFIXES[style], fg=fg)
    click.echo(f"{prefix} {click.style(message, fg=fg)}", file=file or sys.stderr, nl=nl)


def success(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a success message with a green checkmark.

    Example:
        >>> success("Upload complete (84.12 MB/s)")
        ✓ Upload complete (84.12 MB/s)
    """
    _output(message, "success", file=file, nl=nl)


def info(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print an info message with a blue arrow."""
    _output(message, "info", file=file, nl=nl)


def warn(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a warning with a yellow warning sign."""
    _output(message, "warn", file=file, nl=nl)


def error(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print an error with a red X."""
    _output(message, "error", file=file, nl=nl)


def detail(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a dimmed detail line."""
    _output(message, "detail", file=file, nl=nl)


class ClickLogHandler(logging.Handler):
    """Render log records with the output styles."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                error(message)
            elif record.levelno >= logging.WARNING:
                warn(message)
            elif record.levelno >= logging.INFO:
                info(message)
            else:
                detail(message)
        except Exception:
            self.handleError(record)


def configure_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Attach a ClickLogHandler to the ``s3pipe`` logger.

    Idempotent: calling it again only adjusts the level.

    Args:
        verbose: Show DEBUG records (per-part progress) as well as INFO+.
        quiet: Only show warnings and errors (used for JSON output).

    Returns:
        The configured ``s3pipe`` logger.
    """
    logger = logging.getLogger("s3pipe")
    if verbose:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.INFO)
    if not any(isinstance(h, ClickLogHandler) for h in logger.handlers):
        logger.addHandler(ClickLogHandler())
    return logger
