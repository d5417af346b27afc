from __future__ import annotations

from .models import Part

DEFAULT_PART_SIZE = 20 * 1024 * 1024


class PartCalculator:
    """Splits byte spans into the parts handed out to clients."""

    def __init__(self, part_size: int = DEFAULT_PART_SIZE):
        if part_size <= 0:
            msg = f"part size must be positive, got {part_size}"
            raise ValueError(msg)
        self.part_size = part_size

    def specify(self, offset: int, length: int) -> list[Part]:
        """Return the span as a single part, whatever its size.

        A negative ``length`` is kept and means "to the end of the object".
        """
        return [Part(part_number=1, part_size=length, offset=offset)]

    def divide(self, offset: int, length: int) -> list[Part]:
        """Split ``[offset, offset + length)`` into parts of at most ``part_size``."""
        if offset < 0:
            msg = f"offset must not be negative, got {offset}"
            raise ValueError(msg)
        if length < 0:
            msg = "length must be resolved before dividing into parts"
            raise ValueError(msg)

        parts: list[Part] = []
        end = offset + length
        position = offset
        while position < end:
            size = min(self.part_size, end - position)
            parts.append(
                Part(part_number=len(parts) + 1, part_size=size, offset=position)
            )
            position += size
        return parts
