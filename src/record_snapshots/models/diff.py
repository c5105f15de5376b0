"""Data models for snapshot comparisons."""

from typing import Any

from pydantic import ConfigDict, Field

from record_snapshots.models.base import ModelBase


class FieldChange(ModelBase):
    """A single modified attribute.

    Attributes:
        from_: Value in the source snapshot (serialized as ``from``).
        to: Value in the target snapshot.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    from_: Any = Field(..., alias="from", description="Source value.")
    to: Any = Field(..., description="Target value.")


class DiffResult(ModelBase):
    """Added/modified/removed classification between two attribute maps.

    Attributes:
        added: Fields present only in the target, with their values.
        modified: Fields present in both with unequal values.
        removed: Fields present only in the source, with their values.
    """

    added: dict[str, Any] = Field(default_factory=dict)
    modified: dict[str, FieldChange] = Field(default_factory=dict)
    removed: dict[str, Any] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)

    def changed_fields(self) -> list[str]:
        """All field names touched by this diff, in scan order."""
        return [*self.modified, *self.added, *self.removed]

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
