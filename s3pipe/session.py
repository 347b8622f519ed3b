"""Upload session state and the completed-part manifest."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum

from s3pipe.sizing import part_count
from s3pipe.storage import CompletedPart


class SessionState(str, Enum):
    """Lifecycle of one coordinator.

    IDLE -> OPENING -> ACTIVE -> COMPLETING -> DONE
                              \\-> ABORTING -> ABORTED
    """

    IDLE = "idle"
    OPENING = "opening"
    ACTIVE = "active"
    COMPLETING = "completing"
    DONE = "done"
    ABORTING = "aborting"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.ABORTED)


@dataclass(frozen=True)
class UploadSession:
    """One open multipart upload.

    Attributes:
        bucket: Target bucket.
        key: Target object key.
        token: Opaque session token issued by the backend.
        part_size: Part size in bytes, fixed for the session.
        input_size: Declared total input size in bytes.
    """

    bucket: str
    key: str
    token: str
    part_size: int
    input_size: int

    @property
    def part_count(self) -> int:
        return part_count(self.input_size, self.part_size)

    @property
    def last_part_size(self) -> int:
        remainder = self.input_size % self.part_size
        return remainder or self.part_size


class PartManifest:
    """Completed parts recorded by position, in any arrival order.

    Each slot (``number - 1``) is written at most once. A separate counter
    tracks how many slots are filled so completeness is known without a scan.

    Thread Safety:
        ``record()`` may be called concurrently from worker threads.
    """

    def __init__(self, part_count: int) -> None:
        if part_count < 1:
            raise ValueError(f"part_count must be at least 1, got {part_count}")
        self.part_count = part_count
        self._slots: list[CompletedPart | None] = [None] * part_count
        self._completed = 0
        self._lock = threading.Lock()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def is_complete(self) -> bool:
        return self.completed == self.part_count

    def record(self, part: CompletedPart) -> None:
        """Store a completed part in its slot.

        Raises:
            ValueError: If the part number is out of range or already recorded.
        """
        if not 1 <= part.number <= self.part_count:
            raise ValueError(f"part number {part.number} outside 1..{self.part_count}")
        index = part.number - 1
        with self._lock:
            if self._slots[index] is not None:
                raise ValueError(f"part {part.number} recorded twice")
            self._slots[index] = part
            self._completed += 1

    def ordered(self) -> list[CompletedPart]:
        """The manifest sorted by part number.

        Raises:
            ValueError: If any part is still missing.
        """
        with self._lock:
            missing = [i + 1 for i, slot in enumerate(self._slots) if slot is None]
            if missing:
                shown = ", ".join(str(n) for n in missing[:5])
                more = f" and {len(missing) - 5} more" if len(missing) > 5 else ""
                raise ValueError(f"manifest incomplete, missing parts {shown}{more}")
            return [slot for slot in self._slots if slot is not None]
