"""State store — JSON snapshot of every component's state.

The audit log is the record of what happened; the state store is a
convenience so a process can resume without replaying. A snapshot is
written after the audit entries for an operation are durable, so a
stale snapshot is always behind the audit trail, never ahead of it.

Writes go to a temporary file first and replace the snapshot in one
rename, so a crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


SNAPSHOT_VERSION = 1


class StateStore:
    """Load and save a single JSON state snapshot.

    Usage:
        store = StateStore(Path("data/state.json"))
        store.save({"clock": 100, ...})
        snapshot = store.load()
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def load(self) -> Optional[dict[str, Any]]:
        """Return the stored snapshot, or None if nothing was saved yet."""
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported state snapshot version {version!r} "
                f"(expected {SNAPSHOT_VERSION})"
            )
        return data["state"]

    def save(self, state: dict[str, Any]) -> None:
        """Atomically replace the snapshot. Raises OSError on failure."""
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"version": SNAPSHOT_VERSION, "state": state},
            sort_keys=True,
            indent=2,
            ensure_ascii=False,
        )
        fd, tmp_name = tempfile.mkstemp(
            dir=self._storage_path.parent, prefix=".state-", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self._storage_path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
