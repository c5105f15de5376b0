"""SQLAlchemy implementation of the SnapshotStorage."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from record_snapshots.errors import StorageError
from record_snapshots.models.snapshot import Snapshot, SnapshotSummary
from record_snapshots.observability.logging import get_logger, log_event
from record_snapshots.persistence.db import make_engine, make_session_factory
from record_snapshots.persistence.models import Base, SnapshotRow
from record_snapshots.persistence.repository import SnapshotStorage


logger = get_logger(__name__)


class SQLSnapshotStorage(SnapshotStorage):
    """Production snapshot storage backed by a relational table.

    Lookups go through the unique ``label`` index; listings select summary
    columns only and filtered clears are a single DELETE statement.
    """

    name = "database"

    def __init__(self, database_url: str, create_tables: bool = True):
        """Initialize the storage with a database URL.

        Args:
            database_url: SQLAlchemy connection string.
            create_tables: Create the snapshots table if it does not exist.
        """
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)
        if create_tables:
            with self._guard("create tables"):
                Base.metadata.create_all(self.engine)

    def __repr__(self) -> str:
        return f"SQLSnapshotStorage(url={self.engine.url!r})"

    @contextmanager
    def _guard(self, action: str, label: Optional[str] = None) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            log_event(
                logger,
                "snapshot_storage_failed",
                f"Constraint violation during {action}",
                level=logging.ERROR,
                label=label,
                backend=self.name,
                action=action,
            )
            raise StorageError(
                self.name, f"Constraint violation during {action}", exc.orig
            ) from exc
        except SQLAlchemyError as exc:
            log_event(
                logger,
                "snapshot_storage_failed",
                f"Database failure during {action}",
                level=logging.ERROR,
                label=label,
                backend=self.name,
                action=action,
            )
            raise StorageError(self.name, f"Failed to {action}", exc) from exc

    @staticmethod
    def _summary_select():
        return select(
            SnapshotRow.label,
            SnapshotRow.record_type,
            SnapshotRow.record_id,
            SnapshotRow.event_kind,
            SnapshotRow.captured_at,
        )

    @staticmethod
    def _to_summaries(rows) -> list[SnapshotSummary]:
        return [
            SnapshotSummary(
                label=r.label,
                record_type=r.record_type,
                record_id=r.record_id,
                event_kind=r.event_kind,
                captured_at=r.captured_at,
            )
            for r in rows
        ]

    @staticmethod
    def _to_snapshot(row: SnapshotRow) -> Snapshot:
        return Snapshot(
            label=row.label,
            record_type=row.record_type,
            record_id=row.record_id,
            event_kind=row.event_kind,
            type_tag=row.type_tag,
            attributes=row.attributes or {},
            metadata=row.snapshot_metadata or {},
            captured_at=row.captured_at,
        )

    def save(self, label: str, snapshot: Snapshot) -> Snapshot:
        stored = snapshot if snapshot.label == label else snapshot.relabel(label)
        with self._guard("save snapshot", label), self.SessionLocal() as session:
            row = session.execute(
                select(SnapshotRow).where(SnapshotRow.label == label)
            ).scalar_one_or_none()
            if row is None:
                row = SnapshotRow(label=label)
                session.add(row)

            row.record_type = stored.record_type
            row.record_id = stored.record_id
            row.event_kind = stored.event_kind
            row.type_tag = stored.type_tag
            row.attributes = stored.attributes
            row.snapshot_metadata = stored.metadata
            row.captured_at = stored.captured_at
            session.commit()
        return stored

    def load(self, label: str) -> Optional[Snapshot]:
        with self._guard("load snapshot", label), self.SessionLocal() as session:
            row = session.execute(
                select(SnapshotRow).where(SnapshotRow.label == label)
            ).scalar_one_or_none()
            if row is None:
                return None
            return self._to_snapshot(row)

    def list(self) -> list[SnapshotSummary]:
        stmt = self._summary_select().order_by(
            SnapshotRow.captured_at.desc(), SnapshotRow.label.desc()
        )
        with self._guard("list snapshots"), self.SessionLocal() as session:
            rows = session.execute(stmt).all()
        return self._to_summaries(rows)

    def delete(self, label: str) -> bool:
        with self._guard("delete snapshot", label), self.SessionLocal() as session:
            result = session.execute(
                delete(SnapshotRow).where(SnapshotRow.label == label)
            )
            session.commit()
            return result.rowcount > 0

    def clear(self, record_type: Optional[str] = None) -> int:
        stmt = delete(SnapshotRow)
        if record_type is not None:
            stmt = stmt.where(SnapshotRow.record_type == record_type)
        with self._guard("clear snapshots"), self.SessionLocal() as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount

    def timeline(
        self, record_type: str, record_id: Optional[str], limit: int = 50
    ) -> list[SnapshotSummary]:
        """Summaries for one record identity, newest first, via the index."""
        stmt = self._summary_select().where(
            SnapshotRow.record_type == record_type
        )
        if record_id is not None:
            stmt = stmt.where(SnapshotRow.record_id == str(record_id))
        stmt = stmt.order_by(
            SnapshotRow.captured_at.desc(), SnapshotRow.label.desc()
        ).limit(limit)
        with self._guard("read timeline"), self.SessionLocal() as session:
            rows = session.execute(stmt).all()
        return self._to_summaries(rows)
