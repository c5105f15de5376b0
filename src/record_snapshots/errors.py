"""Exception taxonomy for the snapshot engine.

Every error raised by the engine derives from ``SnapshotError``. Lower layers
are never silenced: callers add context and re-raise.
"""

from typing import Iterable, Optional


class SnapshotError(Exception):
    """Base class for all snapshot engine errors."""

    def __init__(self, code: str, detail: str):
        self.code = code
        self.detail = detail
        super().__init__(detail)


class SerializationError(SnapshotError):
    """The input cannot be normalized into an attribute mapping."""

    def __init__(self, detail: str, type_name: Optional[str] = None):
        self.type_name = type_name
        super().__init__("snapshot.serialization", detail)


class NotFoundError(SnapshotError):
    """One or more referenced labels do not exist."""

    def __init__(self, labels: Iterable[str]):
        self.labels = list(labels)
        first = self.labels[0] if self.labels else "<unknown>"
        super().__init__("snapshot.not_found", f"Snapshot '{first}' not found")

    @property
    def label(self) -> Optional[str]:
        return self.labels[0] if self.labels else None


class StorageError(SnapshotError):
    """A backend failed to read or write.

    Attributes:
        backend: Name of the backend that failed.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        backend: str,
        detail: str,
        cause: Optional[BaseException] = None,
    ):
        self.backend = backend
        self.cause = cause
        message = f"[{backend}] {detail}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__("snapshot.storage", message)
