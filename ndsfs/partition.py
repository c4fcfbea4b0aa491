"""Bookkeeping of occupied byte ranges inside a fixed-size image."""

from __future__ import annotations

from bisect import bisect_right, insort

__all__ = ["PartitionList"]


def _align_up(value: int, align: int) -> int:
    return -(-value // align) * align


class PartitionList:
    """Tracks non-overlapping allocated blocks within ``[0, size)``.

    Blocks are identified by their start offset. Zero-length allocations
    succeed whenever the position lies within the image but are not recorded.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("partition size must not be negative")
        self.size = size
        self._starts: list[int] = []
        self._sizes: dict[int, int] = {}

    def _fits(self, pos: int, size: int) -> bool:
        if pos < 0 or pos + size > self.size:
            return False
        index = bisect_right(self._starts, pos)
        if index > 0:
            previous = self._starts[index - 1]
            if previous + self._sizes[previous] > pos:
                return False
        if index < len(self._starts) and self._starts[index] < pos + size:
            return False
        return True

    def _record(self, pos: int, size: int) -> None:
        insort(self._starts, pos)
        self._sizes[pos] = size

    def alloc_pos(self, pos: int, size: int) -> bool:
        """Reserve ``size`` bytes at ``pos``; return False if the range is taken or out of bounds."""
        if size < 0:
            raise ValueError("allocation size must not be negative")
        if size == 0:
            return 0 <= pos <= self.size
        if not self._fits(pos, size):
            return False
        self._record(pos, size)
        return True

    def alloc(self, size: int, align: int = 1, start: int = 0) -> int | None:
        """Reserve ``size`` bytes at the lowest ``align``-aligned free offset not below ``start``.

        Returns the chosen offset, or None if no free range is large enough.
        """
        if size < 0:
            raise ValueError("allocation size must not be negative")
        if align < 1:
            raise ValueError("alignment must be at least 1")
        candidate = _align_up(max(start, 0), align)
        for block_start in self._starts:
            block_end = block_start + self._sizes[block_start]
            if block_end <= candidate:
                continue
            if candidate + size <= block_start:
                break
            candidate = _align_up(block_end, align)
        if candidate + size > self.size:
            return None
        if size:
            self._record(candidate, size)
        return candidate

    def free(self, pos: int) -> bool:
        """Release the block starting at ``pos``; return False if there is none."""
        if pos not in self._sizes:
            return False
        del self._sizes[pos]
        self._starts.remove(pos)
        return True

    def blocks(self) -> list[tuple[int, int]]:
        """Return the allocated blocks as ``(offset, size)`` pairs in offset order."""
        return [(start, self._sizes[start]) for start in self._starts]