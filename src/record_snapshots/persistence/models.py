"""SQLAlchemy models for the table backend.

One row per snapshot, keyed by an internal integer id with a unique label.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from record_snapshots.models.snapshot import utcnow


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class SnapshotRow(Base):
    """Represents a stored snapshot.

    Attributes:
        id: Internal database identifier.
        label: Unique key of the snapshot.
        record_type: Type of the originating record, if any.
        record_id: Identifier of the originating record, if any.
        event_kind: Why the snapshot was taken.
        type_tag: Serializer type tag of the input.
        attributes: JSON blob of normalized attributes.
        snapshot_metadata: JSON blob of free-form context (column ``metadata``).
        captured_at: When the record was serialized.
    """

    __tablename__ = "snapshots"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    label: Mapped[str] = mapped_column(String(255), unique=True)
    record_type: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    record_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    event_kind: Mapped[str] = mapped_column(String(64), default="manual")
    type_tag: Mapped[str] = mapped_column(String(255), default="mapping")
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    snapshot_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("ix_snapshots_record", "record_type", "record_id"),
        Index("ix_snapshots_event_kind", "event_kind"),
        Index("ix_snapshots_captured_at", "captured_at"),
    )
