"""Enumeration definitions for the snapshot engine."""

from enum import Enum


class EventKind(str, Enum):
    """Describes why a snapshot was taken.

    The value is informational only: it never affects storage or diffing.
    Backends accept any string, these are the ones the engine produces.

    Attributes:
        MANUAL: Explicitly requested by a caller.
        SCHEDULED: Taken by an external scheduler.
        CREATED: The record was created.
        UPDATED: The record was updated.
        DELETED: The record was deleted.
    """

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def lifecycle(cls) -> tuple["EventKind", ...]:
        return (cls.CREATED, cls.UPDATED, cls.DELETED)
