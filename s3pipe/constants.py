"""Shared constants for s3pipe.

Backend limits follow the S3 multipart-upload protocol. Anything that the
sizing policy, the CLI and the tests all need to agree on lives here.
"""

from __future__ import annotations

MIB: int = 1024 * 1024
GIB: int = 1024 * MIB

# S3 multipart limits (the final part is exempt from the minimum)
MIN_PART_SIZE: int = 5 * MIB
MAX_PART_SIZE: int = 5 * GIB
MAX_PARTS: int = 10_000

# CLI defaults
DEFAULT_PART_SIZE_MB: int = 64
DEFAULT_CONCURRENCY: int = 1

# Memory left untouched for the interpreter, boto3 and the OS page cache
# when the part size is derived from available memory.
RESERVED_MEMORY: int = 64 * MIB

# Buffers kept when uploading strictly sequentially
SEQUENTIAL_BUFFERS: int = 1

SUPPORTED_SCHEMES: frozenset[str] = frozenset({"s3"})
