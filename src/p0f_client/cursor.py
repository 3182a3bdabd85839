"""
Sequential reader over a fixed byte buffer.

The daemon's response is a flat C struct. Reading it through a cursor keeps
every bounds check in one place and turns decoding into a flat sequence of
typed reads.
"""

from typing import Optional


class ByteCursor:
    """Read-only cursor over an immutable byte buffer."""

    def __init__(self, buffer: bytes) -> None:
        self._buffer = bytes(buffer)
        self._offset = 0

    @property
    def offset(self) -> int:
        """Number of bytes consumed so far."""
        return self._offset

    @property
    def remaining(self) -> int:
        """Number of bytes left to read."""
        return len(self._buffer) - self._offset

    def read_fixed(self, size: int) -> Optional[bytes]:
        """
        Return the next `size` bytes and advance past them.

        Returns None, leaving the offset untouched, when fewer than `size`
        bytes remain.
        """
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")

        end = self._offset + size
        if end > len(self._buffer):
            return None

        chunk = self._buffer[self._offset:end]
        self._offset = end
        return chunk

    def peek_remaining(self) -> bytes:
        """Return the unread tail without advancing."""
        return self._buffer[self._offset:]
