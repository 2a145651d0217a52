"""Atomic units — all-or-nothing execution across several stores.

Each mutating operation stages its writes directly into the stores it
touches, inside ``atomic(...)``. If anything in the block raises, every
participant returns to the savepoint taken on entry, so a late failure
(a mint refused after the audit append succeeded) leaves no trace in any
store. Participants that are not Transactional are skipped; they must
only be written as the last fallible step of a block.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from revgate.capabilities import Transactional


@contextmanager
def atomic(*participants: Any) -> Iterator[None]:
    """Run a block as one unit over ``participants``.

    Usage:
        with atomic(self, audit_log, balances):
            audit_log.log_event(...)
            balances.mint(...)
            self._entries[entry_id] = entry
    """
    marks: list[tuple[Transactional, Any]] = []
    seen: set[int] = set()
    for participant in participants:
        if participant is None or id(participant) in seen:
            continue
        seen.add(id(participant))
        if isinstance(participant, Transactional):
            marks.append((participant, participant.savepoint()))

    try:
        yield
    except BaseException:
        for participant, mark in reversed(marks):
            participant.rollback_to(mark)
        raise
