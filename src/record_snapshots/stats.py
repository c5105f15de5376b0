"""Aggregated statistics over stored snapshots.

All figures are computed from whatever the backend lists at call time; a
concurrent writer may or may not be reflected.
"""

import json
from collections import Counter
from datetime import datetime
from typing import Any, Optional

from record_snapshots.diff import compute_diff
from record_snapshots.models.snapshot import SnapshotSummary
from record_snapshots.models.stats import StatsSummary
from record_snapshots.persistence.repository import SnapshotStorage


def day_bucket(at: datetime) -> str:
    return at.strftime("%Y-%m-%d")


def week_bucket(at: datetime) -> str:
    year, week, _ = at.isocalendar()
    return f"{year}-W{week:02d}"


def month_bucket(at: datetime) -> str:
    return at.strftime("%Y-%m")


class StatsAggregator:
    """Computes counters, most-changed fields and change frequency.

    Args:
        storage: Backend to read from.
        record_type: Restrict to one record type (None means every snapshot).
        record_id: Restrict further to one record of that type.
        top_n: Number of fields reported by ``most_changed_fields``.
    """

    def __init__(
        self,
        storage: SnapshotStorage,
        record_type: Optional[str] = None,
        record_id: Optional[Any] = None,
        top_n: int = 10,
    ):
        self.storage = storage
        self.record_type = record_type
        self.record_id = str(record_id) if record_id is not None else None
        self.top_n = top_n

    def _scoped(self) -> list[SnapshotSummary]:
        return [
            s
            for s in self.storage.list()
            if s.belongs_to(self.record_type, self.record_id)
        ]

    def counters(self) -> dict[str, Any]:
        summaries = self._scoped()
        by_kind = Counter(s.event_kind for s in summaries)
        return {"total": len(summaries), "by_event_kind": dict(by_kind)}

    def most_changed_fields(self, limit: Optional[int] = None) -> dict[str, int]:
        """Counts how often each field changed between consecutive snapshots.

        Snapshots are paired per record identity in capture order, so two
        different records are never diffed against each other. Ties keep the
        order in which fields were first seen.
        """
        histories: dict[tuple, list[SnapshotSummary]] = {}
        for summary in self._scoped():
            key = (summary.record_type, summary.record_id)
            histories.setdefault(key, []).append(summary)

        counts: dict[str, int] = {}
        for entries in histories.values():
            entries.sort(key=lambda s: (s.captured_at, s.label))
            previous = None
            for entry in entries:
                snapshot = self.storage.load(entry.label)
                if snapshot is None:
                    # Deleted since the listing was taken
                    continue
                if previous is not None:
                    diff = compute_diff(previous.attributes, snapshot.attributes)
                    for field in diff.changed_fields():
                        counts[field] = counts.get(field, 0) + 1
                previous = snapshot

        order = {field: i for i, field in enumerate(counts)}
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], order[kv[0]]))
        return dict(ranked[: self.top_n if limit is None else limit])

    def change_frequency(self) -> dict[str, Any]:
        """Buckets snapshot counts by day, ISO week and month."""
        stamps = sorted(s.captured_at for s in self._scoped())
        by_day = Counter(day_bucket(t) for t in stamps)
        by_week = Counter(week_bucket(t) for t in stamps)
        by_month = Counter(month_bucket(t) for t in stamps)

        if stamps:
            span_days = (stamps[-1] - stamps[0]).days
            average = len(stamps) / max(1, span_days)
        else:
            average = 0.0

        return {
            "by_day": dict(by_day),
            "by_week": dict(by_week),
            "by_month": dict(by_month),
            "average_per_day": average,
        }

    def summary(self) -> StatsSummary:
        counters = self.counters()
        frequency = self.change_frequency()
        return StatsSummary(
            total_snapshots=counters["total"],
            counts_by_event_kind=counters["by_event_kind"],
            most_changed_fields=self.most_changed_fields(),
            changes_by_day=frequency["by_day"],
            changes_by_week=frequency["by_week"],
            changes_by_month=frequency["by_month"],
            average_changes_per_day=frequency["average_per_day"],
        )

    def to_json(self) -> str:
        return json.dumps(self.summary().model_dump(), indent=2)
