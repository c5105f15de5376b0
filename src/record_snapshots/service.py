"""Snapshot service facade.

The service normalizes inputs, assigns labels and delegates to exactly one
storage backend, injected at construction. Diffs and statistics are computed
on demand from what the backend returns.
"""

from __future__ import annotations

import dataclasses
from collections.abc import MutableMapping
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel

from record_snapshots.config import (
    AutomaticCapture,
    RetentionPolicy,
    SnapshotConfig,
    build_storage,
)
from record_snapshots.diff import compute_diff
from record_snapshots.errors import NotFoundError
from record_snapshots.models.diff import DiffResult
from record_snapshots.models.enums import EventKind
from record_snapshots.models.snapshot import Snapshot, SnapshotSummary, utcnow
from record_snapshots.observability.logging import get_logger, log_event
from record_snapshots.persistence.repository import SnapshotStorage
from record_snapshots.serializer import MAPPING_TAG, Serializer
from record_snapshots.stats import StatsAggregator


logger = get_logger(__name__)

LABEL_TIME_FORMAT = "%Y-%m-%d-%H-%M-%S"


def _event_value(event_kind: Any) -> str:
    return event_kind.value if isinstance(event_kind, EventKind) else str(event_kind)


def default_prefix(event_kind: str) -> str:
    """Label prefix for an event kind: manual, scheduled or auto."""
    if event_kind in (EventKind.MANUAL.value, EventKind.SCHEDULED.value):
        return event_kind
    return "auto"


def generate_label(
    record_type: Optional[str],
    record_id: Optional[str],
    event_kind: str,
    captured_at: datetime,
    prefix: Optional[str] = None,
) -> str:
    """Builds ``{prefix}-{type}-{id}-{event}-{timestamp}``.

    Missing identity parts render as ``Model`` and ``unknown``.
    """
    return "-".join(
        [
            prefix or default_prefix(event_kind),
            record_type or "Model",
            str(record_id) if record_id is not None else "unknown",
            event_kind,
            captured_at.strftime(LABEL_TIME_FORMAT),
        ]
    )


class SnapshotService:
    """Captures, stores and compares record snapshots.

    Args:
        storage: Active backend. Built from ``config`` when omitted, which
            means the database backend under the default configuration.
        config: Static engine configuration.
        serializer: Custom serializer; built from ``config`` when omitted.
    """

    def __init__(
        self,
        storage: Optional[SnapshotStorage] = None,
        config: Optional[SnapshotConfig] = None,
        serializer: Optional[Serializer] = None,
    ):
        self.config = config or SnapshotConfig()
        self.serializer = serializer or Serializer(
            exclude_fields=self.config.exclude_fields,
            identity_field=self.config.identity_field,
        )
        self._storage = storage if storage is not None else build_storage(self.config)

    @classmethod
    def from_config(cls, config: SnapshotConfig) -> "SnapshotService":
        return cls(storage=build_storage(config), config=config)

    @property
    def storage(self) -> SnapshotStorage:
        return self._storage

    def set_storage(self, storage: SnapshotStorage) -> None:
        """Swaps the active backend (mainly for tests)."""
        log_event(
            logger,
            "storage_switched",
            f"Switching snapshot storage to {storage!r}",
            backend=storage.name,
        )
        self._storage = storage

    def save(
        self,
        record: Any,
        label: Optional[str] = None,
        event_kind: Any = EventKind.MANUAL,
        *,
        record_type: Optional[str] = None,
        record_id: Optional[Any] = None,
        metadata: Optional[dict[str, Any]] = None,
        prefix: Optional[str] = None,
    ) -> Snapshot:
        """Normalizes a record and stores it under a label.

        Args:
            record: Tagged record, mapping or scalar to capture.
            label: Unique key; generated from the identity when omitted.
            event_kind: Why the snapshot is taken.
            record_type: Overrides the identity type found by the serializer.
            record_id: Overrides the identity value found by the serializer.
            metadata: Free-form context stored alongside the attributes.
            prefix: Overrides the generated label prefix.

        Returns:
            The stored snapshot.

        Raises:
            SerializationError: If the record cannot be normalized.
            StorageError: If the backend fails to write.
        """
        normalized = self.serializer.normalize(record)
        kind = _event_value(event_kind)
        rtype = record_type or normalized.record_type
        rid = str(record_id) if record_id is not None else normalized.record_id

        if not label:
            label = generate_label(
                rtype, rid, kind, normalized.captured_at, prefix
            )

        snapshot = Snapshot(
            label=label,
            record_type=rtype,
            record_id=rid,
            event_kind=kind,
            type_tag=normalized.type_tag,
            attributes=normalized.attributes,
            metadata=metadata or {},
            captured_at=normalized.captured_at,
        )
        stored = self._storage.save(label, snapshot)
        log_event(
            logger,
            "snapshot_saved",
            f"Saved snapshot {label}",
            label=label,
            backend=self._storage.name,
            event_kind=kind,
        )
        return stored

    def save_auto(
        self,
        record: Any,
        event_kind: Any,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Snapshot:
        """Captures a record in response to a lifecycle event."""
        return self.save(
            record, None, event_kind, metadata=metadata, prefix="auto"
        )

    def save_scheduled(
        self,
        record: Any,
        label: Optional[str] = None,
        frequency: str = "daily",
    ) -> Snapshot:
        """Captures a record on behalf of an external scheduler.

        The generated label uses the frequency in place of the event kind.
        """
        normalized = self.serializer.normalize(record)
        if not label:
            label = generate_label(
                normalized.record_type,
                normalized.record_id,
                frequency,
                normalized.captured_at,
                prefix=EventKind.SCHEDULED.value,
            )
        return self.save(normalized, label, EventKind.SCHEDULED)

    def load(self, label: str) -> Optional[Snapshot]:
        return self._storage.load(label)

    def load_or_fail(self, label: str) -> Snapshot:
        """Loads a snapshot, raising NotFoundError when it is missing."""
        snapshot = self._storage.load(label)
        if snapshot is None:
            raise NotFoundError([label])
        return snapshot

    def diff(self, label_a: str, label_b: str) -> DiffResult:
        """Compares two stored snapshots.

        Raises:
            NotFoundError: Naming every missing label, ``label_a`` first.
        """
        snapshot_a = self._storage.load(label_a)
        snapshot_b = self._storage.load(label_b)

        missing = [
            label
            for label, snap in ((label_a, snapshot_a), (label_b, snapshot_b))
            if snap is None
        ]
        if missing:
            raise NotFoundError(missing)

        return compute_diff(snapshot_a.attributes, snapshot_b.attributes)

    def compare_with(self, label: str, record: Any) -> DiffResult:
        """Diffs a stored snapshot against the live record, storing nothing."""
        stored = self.load_or_fail(label)
        current = self.serializer.normalize(record)
        return compute_diff(stored.attributes, current.attributes)

    def restore(self, label: str, record: Any) -> Any:
        """Writes a stored snapshot's attributes back onto a record.

        Only fields the record already declares are restored; excluded
        fields keep their current values. Pydantic models and frozen
        dataclasses are copied (pydantic re-validates, turning stored
        JSON-native values back into field types). Mappings and other
        objects are updated in place.

        Returns:
            The restored record.

        Raises:
            NotFoundError: If ``label`` does not exist.
            ValueError: If the snapshot was taken of a different type.
        """
        snapshot = self.load_or_fail(label)
        if snapshot.type_tag not in (MAPPING_TAG, type(record).__name__):
            raise ValueError(
                f"Snapshot '{label}' holds a {snapshot.type_tag}, "
                f"not a {type(record).__name__}"
            )
        attributes = snapshot.attributes

        if isinstance(record, BaseModel):
            fields = type(record).model_fields
            values = record.model_dump()
            values.update((k, v) for k, v in attributes.items() if k in fields)
            restored = type(record).model_validate(values)
        elif isinstance(record, MutableMapping):
            record.update(attributes)
            restored = record
        elif dataclasses.is_dataclass(record):
            names = {f.name for f in dataclasses.fields(record) if f.init}
            changes = {k: v for k, v in attributes.items() if k in names}
            if type(record).__dataclass_params__.frozen:
                restored = dataclasses.replace(record, **changes)
            else:
                for name, value in changes.items():
                    setattr(record, name, value)
                restored = record
        else:
            for name, value in attributes.items():
                if hasattr(record, name):
                    setattr(record, name, value)
            restored = record

        log_event(
            logger,
            "snapshot_restored",
            f"Restored {type(record).__name__} from snapshot {label}",
            label=label,
            backend=self._storage.name,
        )
        return restored

    def list(self) -> list[SnapshotSummary]:
        return self._storage.list()

    def timeline(
        self,
        record_type: str,
        record_id: Optional[Any] = None,
        limit: int = 50,
    ) -> list[SnapshotSummary]:
        rid = str(record_id) if record_id is not None else None
        return self._storage.timeline(record_type, rid, limit)

    def latest(
        self, record_type: str, record_id: Optional[Any] = None
    ) -> Optional[Snapshot]:
        """Most recent full snapshot for a record identity."""
        entries = self.timeline(record_type, record_id, limit=1)
        if not entries:
            return None
        return self._storage.load(entries[0].label)

    def delete(self, label: str) -> bool:
        removed = self._storage.delete(label)
        if removed:
            log_event(
                logger,
                "snapshot_deleted",
                f"Deleted snapshot {label}",
                label=label,
                backend=self._storage.name,
            )
        return removed

    def clear(self, record_type: Optional[str] = None) -> int:
        count = self._storage.clear(record_type)
        log_event(
            logger,
            "snapshots_cleared",
            f"Cleared {count} snapshots",
            backend=self._storage.name,
            record_type=record_type,
            count=count,
        )
        return count

    def prune(
        self,
        retention: Optional[RetentionPolicy] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Deletes snapshots outside the retention policy.

        Age applies to every snapshot; ``max_count`` keeps the newest N per
        record identity (snapshots without identity share one group).

        Returns:
            The number of snapshots removed.
        """
        policy = retention or self.config.retention
        if not policy.enabled:
            return 0

        now = now or utcnow()
        cutoff = (
            now - timedelta(days=policy.max_age_days)
            if policy.max_age_days is not None
            else None
        )

        doomed: list[str] = []
        kept_per_identity: dict[tuple, int] = {}
        for summary in self._storage.list():
            if cutoff is not None and summary.captured_at < cutoff:
                doomed.append(summary.label)
                continue
            if policy.max_count is not None:
                key = (summary.record_type, summary.record_id)
                kept_per_identity[key] = kept_per_identity.get(key, 0) + 1
                if kept_per_identity[key] > policy.max_count:
                    doomed.append(summary.label)

        removed = sum(1 for label in doomed if self._storage.delete(label))
        log_event(
            logger,
            "snapshots_pruned",
            f"Pruned {removed} snapshots",
            backend=self._storage.name,
            count=removed,
        )
        return removed

    def stats(
        self,
        record_type: Optional[str] = None,
        record_id: Optional[Any] = None,
        record: Any = None,
    ) -> StatsAggregator:
        """Statistics over one record identity, or every snapshot.

        Pass either an explicit identity or the record itself.
        """
        if record is not None:
            normalized = self.serializer.normalize(record)
            record_type = normalized.record_type
            record_id = normalized.record_id
        return StatsAggregator(
            self._storage,
            record_type=record_type,
            record_id=record_id,
            top_n=self.config.most_changed_limit,
        )


def build_service(config: Optional[SnapshotConfig] = None) -> SnapshotService:
    """Builds a service wired to the configured backend and serializer.

    With no argument the configuration is read from the environment.
    """
    config = config or SnapshotConfig.from_env()
    return SnapshotService.from_config(config)


class SnapshotRecorder:
    """Observer that lifecycle glue calls when a record changes.

    Only record types enabled in the automatic-capture configuration are
    captured; everything else is ignored.
    """

    def __init__(
        self,
        service: SnapshotService,
        automatic: Optional[AutomaticCapture] = None,
        metadata_provider: Optional[Callable[[], dict[str, Any]]] = None,
    ):
        self.service = service
        self.automatic = automatic or service.config.automatic
        self.metadata_provider = metadata_provider

    def on_record_event(self, record: Any, event_kind: Any) -> Optional[Snapshot]:
        kind = _event_value(event_kind)
        if kind not in self.automatic.events_for(type(record).__name__):
            return None
        metadata = self.metadata_provider() if self.metadata_provider else None
        return self.service.save_auto(record, kind, metadata=metadata)

    __call__ = on_record_event
