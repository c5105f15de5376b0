"""In-memory implementation of the SnapshotStorage.

Snapshots live in a process-local map shared by every instance unless an
instance is created with its own store. Nothing survives a restart.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from record_snapshots.models.snapshot import Snapshot, SnapshotSummary
from record_snapshots.observability.logging import get_logger, log_event
from record_snapshots.persistence.repository import SnapshotStorage, newest_first


logger = get_logger(__name__)


class InMemorySnapshotStorage(SnapshotStorage):
    """Thread-safe, ephemeral snapshot storage.

    Useful for unit tests and local development. Writers are serialized by a
    lock; readers work on a copy of the map.

    Args:
        isolated: Give this instance a private map instead of the shared one.
    """

    name = "array"

    _shared: dict[str, Snapshot] = {}
    _lock = threading.Lock()

    def __init__(self, isolated: bool = False):
        self._snapshots: dict[str, Snapshot] = {} if isolated else self._shared

    @classmethod
    def clear_all(cls) -> None:
        """Empties the shared map regardless of any instance."""
        with cls._lock:
            cls._shared.clear()

    def _view(self) -> dict[str, Snapshot]:
        return dict(self._snapshots)

    def save(self, label: str, snapshot: Snapshot) -> Snapshot:
        """Stores the snapshot under ``label``, replacing any previous one."""
        stored = snapshot if snapshot.label == label else snapshot.relabel(label)
        with self._lock:
            self._snapshots[label] = stored
        return stored

    def load(self, label: str) -> Optional[Snapshot]:
        return self._view().get(label)

    def list(self) -> list[SnapshotSummary]:
        return newest_first([s.summary() for s in self._view().values()])

    def delete(self, label: str) -> bool:
        with self._lock:
            return self._snapshots.pop(label, None) is not None

    def clear(self, record_type: Optional[str] = None) -> int:
        with self._lock:
            if record_type is None:
                count = len(self._snapshots)
                self._snapshots.clear()
                return count

            doomed = [
                label
                for label, snap in self._snapshots.items()
                if snap.record_type == record_type
            ]
            for label in doomed:
                del self._snapshots[label]
        log_event(
            logger,
            "snapshot_clear",
            f"Cleared {len(doomed)} in-memory snapshots of {record_type}",
            level=logging.DEBUG,
            backend=self.name,
            record_type=record_type,
        )
        return len(doomed)
