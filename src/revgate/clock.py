"""Logical clock — the host-supplied notion of "now".

Time in the ledger is a block height, not wall-clock time. The host
advances it between calls; components only ever read it.
"""

from __future__ import annotations


class LogicalClock:
    """Monotonic logical time shared by every component.

    Usage:
        clock = LogicalClock(100)
        clock.now()        # 100
        clock.advance(1441)
        clock.now()        # 1541
    """

    def __init__(self, height: int = 0) -> None:
        if height < 0:
            raise ValueError(f"Logical time must be non-negative, got {height}")
        self._height = height

    def now(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move time forward. Returns the new height."""
        if blocks < 0:
            raise ValueError(f"Cannot advance by a negative amount: {blocks}")
        self._height += blocks
        return self._height

    def set(self, height: int) -> None:
        """Jump to an absolute height. Time never runs backwards."""
        if height < self._height:
            raise ValueError(
                f"Logical time cannot decrease (current {self._height}, requested {height})"
            )
        self._height = height
