"""Storage backend contract.

Every backend stores snapshots keyed by label and is interchangeable behind
this interface. Saving under an existing label overwrites it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from record_snapshots.models.snapshot import Snapshot, SnapshotSummary


class SnapshotStorage(ABC):
    """Abstract interface for persisting snapshots by label."""

    name: str = "abstract"

    @abstractmethod
    def save(self, label: str, snapshot: Snapshot) -> Snapshot:
        """Writes or overwrites the snapshot stored under a label.

        Args:
            label: The unique key. Takes precedence over ``snapshot.label``.
            snapshot: The snapshot to persist.

        Returns:
            The stored snapshot.

        Raises:
            StorageError: If the backend cannot write.
        """
        pass  # pragma: no cover

    @abstractmethod
    def load(self, label: str) -> Optional[Snapshot]:
        """Retrieves a snapshot by label.

        Returns:
            The stored Snapshot, or None if the label is unknown.
        """
        pass  # pragma: no cover

    @abstractmethod
    def list(self) -> list[SnapshotSummary]:
        """Lists summaries of all stored snapshots, newest first."""
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, label: str) -> bool:
        """Deletes a snapshot.

        Returns:
            True if something was removed.
        """
        pass  # pragma: no cover

    @abstractmethod
    def clear(self, record_type: Optional[str] = None) -> int:
        """Removes all snapshots, or only those of one record type.

        Args:
            record_type: Optional filter on ``Snapshot.record_type``.

        Returns:
            The number of snapshots removed.
        """
        pass  # pragma: no cover

    def timeline(
        self, record_type: str, record_id: Optional[str], limit: int = 50
    ) -> list[SnapshotSummary]:
        """Summaries for one record identity, newest first.

        Backends with an index on the identity columns override this.
        """
        matching = [
            s for s in self.list() if s.belongs_to(record_type, record_id)
        ]
        return newest_first(matching)[:limit]

    def exists(self, label: str) -> bool:
        return self.load(label) is not None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def newest_first(summaries: list[SnapshotSummary]) -> list[SnapshotSummary]:
    return sorted(
        summaries, key=lambda s: (s.captured_at, s.label), reverse=True
    )
