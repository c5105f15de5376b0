"""File-per-snapshot implementation of the SnapshotStorage.

Each label is stored as one JSON document under a configured directory.
Intended for low-volume and archival use: listing and filtered clearing
read every file.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError
from pydantic_core import from_json

from record_snapshots.errors import StorageError
from record_snapshots.models.snapshot import Snapshot, SnapshotSummary
from record_snapshots.observability.logging import get_logger, log_event
from record_snapshots.persistence.repository import SnapshotStorage, newest_first


logger = get_logger(__name__)

SUFFIX = ".json"
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")
_MAX_STEM = 120


def label_to_filename(label: str) -> str:
    """Derives a filesystem-safe file name from a label.

    Safe labels map to ``<label>.json``. Anything else is sanitized and
    suffixed with a short digest of the original label, so two different
    labels never share a file.
    """
    safe = _UNSAFE.sub("_", label).lstrip(".")
    if safe == label and 0 < len(safe) <= _MAX_STEM:
        return safe + SUFFIX
    digest = hashlib.sha1(label.encode("utf-8")).hexdigest()[:10]
    return f"{safe[:_MAX_STEM]}-{digest}{SUFFIX}"


class FileSnapshotStorage(SnapshotStorage):
    """Stores each snapshot as a JSON file.

    Args:
        path: Directory holding the snapshot files; created if missing.
    """

    name = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                self.name, f"Cannot create directory {self.path}", exc
            ) from exc

    def __repr__(self) -> str:
        return f"FileSnapshotStorage(path={str(self.path)!r})"

    def _file_for(self, label: str) -> Path:
        return self.path / label_to_filename(label)

    def _files(self) -> list[Path]:
        try:
            return sorted(self.path.glob(f"*{SUFFIX}"))
        except OSError as exc:
            raise StorageError(self.name, f"Cannot list {self.path}", exc) from exc

    def _read(self, file: Path) -> dict[str, Any]:
        try:
            data = from_json(file.read_bytes())
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as exc:
            log_event(
                logger,
                "snapshot_read_failed",
                f"Unreadable snapshot file {file}",
                level=logging.ERROR,
                backend=self.name,
                file=str(file),
            )
            raise StorageError(self.name, f"Cannot read {file}", exc) from exc
        if not isinstance(data, dict):
            raise StorageError(
                self.name,
                f"Malformed snapshot {file}",
                TypeError(f"expected a JSON object, got {type(data).__name__}"),
            )
        return data

    def save(self, label: str, snapshot: Snapshot) -> Snapshot:
        """Writes the snapshot atomically via a temp file and rename."""
        stored = snapshot if snapshot.label == label else snapshot.relabel(label)
        target = self._file_for(label)
        payload = stored.model_dump_json(indent=2)

        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path,
                prefix=".snapshot-",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            log_event(
                logger,
                "snapshot_write_failed",
                f"Failed to write snapshot {label}",
                level=logging.ERROR,
                label=label,
                backend=self.name,
            )
            raise StorageError(self.name, f"Cannot write {target}", exc) from exc
        return stored

    def load(self, label: str) -> Optional[Snapshot]:
        file = self._file_for(label)
        try:
            data = self._read(file)
        except FileNotFoundError:
            return None
        try:
            return Snapshot.model_validate(data)
        except ValidationError as exc:
            raise StorageError(self.name, f"Malformed snapshot {file}", exc) from exc

    def list(self) -> list[SnapshotSummary]:
        summaries = []
        for file in self._files():
            try:
                data = self._read(file)
            except FileNotFoundError:
                # Deleted between glob and read
                continue
            try:
                summary = SnapshotSummary(
                    label=data.get("label", file.stem),
                    record_type=data.get("record_type"),
                    record_id=data.get("record_id"),
                    event_kind=data.get("event_kind", "manual"),
                    captured_at=data.get("captured_at")
                    or os.path.getmtime(file),
                )
            except ValidationError as exc:
                raise StorageError(
                    self.name, f"Malformed snapshot {file}", exc
                ) from exc
            summaries.append(summary)
        return newest_first(summaries)

    def delete(self, label: str) -> bool:
        try:
            self._file_for(label).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(self.name, f"Cannot delete {label}", exc) from exc
        return True

    def clear(self, record_type: Optional[str] = None) -> int:
        deleted = 0
        for file in self._files():
            try:
                if record_type is not None:
                    if self._read(file).get("record_type") != record_type:
                        continue
                file.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(self.name, f"Cannot delete {file}", exc) from exc
            deleted += 1
        return deleted
