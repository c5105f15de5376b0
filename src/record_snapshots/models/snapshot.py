"""Data model for record snapshots.

This module defines the stored snapshot and the lightweight summary that
backends return from listings.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field, field_validator

from record_snapshots.models.base import ModelBase
from record_snapshots.models.enums import EventKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SnapshotSummary(ModelBase):
    """Lightweight listing entry for a stored snapshot.

    Attributes:
        label: Unique key of the snapshot within its backend.
        record_type: Type of the originating record, if any.
        record_id: Identifier of the originating record, if any.
        event_kind: Why the snapshot was taken.
        captured_at: When the record was serialized.
    """

    label: str = Field(..., description="Unique key of the snapshot.")
    record_type: Optional[str] = Field(
        default=None, description="Type of the originating record."
    )
    record_id: Optional[str] = Field(
        default=None, description="Identifier of the originating record."
    )
    event_kind: str = Field(
        default=EventKind.MANUAL.value,
        description="Why the snapshot was taken.",
    )
    captured_at: datetime = Field(
        default_factory=utcnow,
        description="When the record was serialized (UTC).",
    )

    @field_validator("captured_at")
    @classmethod
    def _normalize_captured_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def belongs_to(
        self, record_type: Optional[str], record_id: Optional[str] = None
    ) -> bool:
        """Checks whether this snapshot matches a record identity scope.

        A ``None`` record type matches everything; a ``None`` record id
        matches every record of the given type.
        """
        if record_type is None:
            return True
        if self.record_type != record_type:
            return False
        return record_id is None or self.record_id == str(record_id)


class Snapshot(SnapshotSummary):
    """An immutable, labeled capture of a record's normalized attributes.

    Attributes:
        type_tag: Serializer type tag (class name, ``mapping`` or scalar type).
        attributes: Flat mapping of field name to JSON-native value.
        metadata: Free-form context (actor, ip address, ...), never diffed.
    """

    type_tag: str = Field(
        default="mapping", description="Serializer type tag of the input."
    )
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Flat mapping of field name to value.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form context that never participates in diffing.",
    )

    def summary(self) -> SnapshotSummary:
        return SnapshotSummary(
            label=self.label,
            record_type=self.record_type,
            record_id=self.record_id,
            event_kind=self.event_kind,
            captured_at=self.captured_at,
        )

    def relabel(self, label: str) -> "Snapshot":
        """Returns a copy of this snapshot stored under another label."""
        return self.model_copy(update={"label": label})
