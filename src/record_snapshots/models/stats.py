"""Data model for aggregated snapshot statistics."""

from pydantic import Field

from record_snapshots.models.base import ModelBase


class StatsSummary(ModelBase):
    """Computed view over a backend's snapshots for one scope.

    Attributes:
        total_snapshots: Number of snapshots in scope.
        counts_by_event_kind: Snapshot count per event kind.
        most_changed_fields: Field name to change count, descending.
        changes_by_day: ``YYYY-MM-DD`` bucket to snapshot count.
        changes_by_week: ISO week (``YYYY-Www``) bucket to snapshot count.
        changes_by_month: ``YYYY-MM`` bucket to snapshot count.
        average_changes_per_day: Total divided by the days spanned.
    """

    total_snapshots: int = 0
    counts_by_event_kind: dict[str, int] = Field(default_factory=dict)
    most_changed_fields: dict[str, int] = Field(default_factory=dict)
    changes_by_day: dict[str, int] = Field(default_factory=dict)
    changes_by_week: dict[str, int] = Field(default_factory=dict)
    changes_by_month: dict[str, int] = Field(default_factory=dict)
    average_changes_per_day: float = 0.0
