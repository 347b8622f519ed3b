"""Part sizing policy.

Decides how large each multipart part is. The part size is fixed for the
lifetime of an upload session and, together with the declared input size,
determines the exact number of parts.

Two ways to pick a part size:

- Explicit: the caller asks for a size, which must sit inside the backend
  limits (5 MiB to 5 GiB).
- Memory-derived: the size is computed from a memory budget (given in bytes,
  or read from the system's available memory via psutil) so that every
  buffer the pipeline may hold at once, plus a reserved floor, fits.

Usage:
    from s3pipe.sizing import choose_part_size, part_count

    size = choose_part_size(input_size, use_available_memory=True, concurrency=4)
    parts = part_count(input_size, size)
"""

from __future__ import annotations

import logging

import psutil

from s3pipe.constants import (
    MAX_PART_SIZE,
    MAX_PARTS,
    MIB,
    MIN_PART_SIZE,
    RESERVED_MEMORY,
    SEQUENTIAL_BUFFERS,
)
from s3pipe.errors import (
    ConfigError,
    InvalidPartSizeError,
    MemoryEstimateError,
    TooManyPartsError,
)

logger = logging.getLogger(__name__)


def part_count(input_size: int, part_size: int) -> int:
    """Number of parts needed to carry ``input_size`` bytes.

    Args:
        input_size: Total declared input size in bytes.
        part_size: Part size in bytes.

    Returns:
        ``input_size // part_size``, plus one for a trailing short part.

    Raises:
        ConfigError: If part_size is not positive.
    """
    if part_size <= 0:
        raise ConfigError(f"Part size must be positive, got {part_size}", part_size=part_size)
    count = input_size // part_size
    if input_size % part_size != 0:
        count += 1
    return count


def buffer_pool_capacity(concurrency: int) -> int:
    """Maximum number of part buffers alive at once for a concurrency level.

    Sequential uploads alternate read and upload on one buffer. Concurrent
    uploads keep one buffer per worker plus one being filled by the reader.
    """
    if concurrency < 1:
        raise ConfigError(
            f"Concurrency must be at least 1, got {concurrency}", concurrency=concurrency
        )
    if concurrency == 1:
        return SEQUENTIAL_BUFFERS
    return concurrency + 1


def available_memory() -> int:
    """Bytes of memory currently available to new allocations."""
    return int(psutil.virtual_memory().available)


def validate_part_size(part_size: int) -> int:
    """Check a part size against the backend limits.

    Raises:
        InvalidPartSizeError: If below 5 MiB or above 5 GiB.
    """
    if part_size < MIN_PART_SIZE:
        raise InvalidPartSizeError(part_size, f"must be at least {MIN_PART_SIZE // MIB} MiB")
    if part_size > MAX_PART_SIZE:
        raise InvalidPartSizeError(part_size, f"must be at most {MAX_PART_SIZE // MIB} MiB")
    return part_size


def _memory_derived_part_size(input_size: int, budget: int, concurrency: int) -> int:
    usable = budget - RESERVED_MEMORY
    if usable <= 0:
        raise MemoryEstimateError(
            f"budget of {budget} bytes does not exceed the reserved {RESERVED_MEMORY} bytes"
        )

    buffers = buffer_pool_capacity(concurrency)
    size = (usable // buffers) // MIB * MIB
    # Buffers larger than the whole input only waste memory
    size = min(size, max(input_size, MIN_PART_SIZE))
    size = max(MIN_PART_SIZE, min(size, MAX_PART_SIZE))
    logger.debug(
        "Memory budget %d bytes, %d buffers -> part size %d bytes", budget, buffers, size
    )
    return size


def choose_part_size(
    input_size: int,
    *,
    part_size: int | None = None,
    memory_budget: int | None = None,
    use_available_memory: bool = False,
    concurrency: int = 1,
) -> int:
    """Pick the part size for an upload.

    Precedence: an explicit ``part_size`` wins; otherwise an explicit
    ``memory_budget``; otherwise the system's available memory when
    ``use_available_memory`` is set.

    Args:
        input_size: Total declared input size in bytes (must be positive).
        part_size: Explicit part size in bytes.
        memory_budget: Memory budget in bytes for all part buffers plus the
            reserved floor.
        use_available_memory: Derive the budget from available system memory.
        concurrency: Number of parallel part uploads.

    Returns:
        Part size in bytes.

    Raises:
        ConfigError: If the input size is not positive, no sizing source is
            given, the part size is out of bounds, the memory estimate is
            unusable, or the upload would exceed the backend's part limit.
    """
    if input_size <= 0:
        raise ConfigError(
            f"Input size must be positive, got {input_size}", input_size=input_size
        )

    if part_size is not None:
        size = validate_part_size(part_size)
    elif memory_budget is not None or use_available_memory:
        budget = memory_budget
        if budget is None:
            try:
                budget = available_memory()
            except (OSError, RuntimeError) as err:
                raise MemoryEstimateError(f"cannot read system memory: {err}") from err
        size = _memory_derived_part_size(input_size, budget, concurrency)
    else:
        raise MemoryEstimateError("no part size given and memory-derived sizing not requested")

    count = part_count(input_size, size)
    if count > MAX_PARTS:
        raise TooManyPartsError(input_size, size, count, MAX_PARTS)
    return size
