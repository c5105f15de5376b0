"""Static configuration for the snapshot engine.

Configuration is built once at startup, from the environment or a YAML file,
and handed to the service. The engine never re-reads it.
"""

import os
from pathlib import Path
from typing import Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from record_snapshots.models.enums import EventKind
from record_snapshots.persistence.db import DEFAULT_SQLITE_URL
from record_snapshots.persistence.file_storage import FileSnapshotStorage
from record_snapshots.persistence.in_memory import InMemorySnapshotStorage
from record_snapshots.persistence.repository import SnapshotStorage
from record_snapshots.persistence.sql_repository import SQLSnapshotStorage


StorageDriver = Literal["database", "file", "array"]


class RetentionPolicy(BaseModel):
    """How long snapshots are kept when ``prune`` is called.

    Attributes:
        enabled: Whether pruning removes anything at all.
        max_age_days: Snapshots older than this are removed.
        max_count: Newest snapshots kept per record identity.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    max_age_days: Optional[int] = Field(default=30, ge=0)
    max_count: Optional[int] = Field(default=None, ge=1)


class AutomaticCapture(BaseModel):
    """Which record lifecycle events produce snapshots.

    ``models`` maps a record type to the events captured for it; an empty or
    null entry falls back to ``events``. Types not listed are never captured.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = False
    events: list[str] = Field(
        default_factory=lambda: [e.value for e in EventKind.lifecycle()]
    )
    models: dict[str, Optional[list[str]]] = Field(default_factory=dict)

    def events_for(self, record_type: Optional[str]) -> list[str]:
        if not self.enabled or record_type not in self.models:
            return []
        return self.models[record_type] or self.events


class SnapshotConfig(BaseModel):
    """Static configuration for storage selection and serialization."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    storage: StorageDriver = Field(
        default="database", description="Active storage backend."
    )
    database_url: str = Field(
        default=DEFAULT_SQLITE_URL,
        description="SQLAlchemy URL for the database backend.",
    )
    file_path: str = Field(
        default="./snapshots",
        description="Directory for the file backend.",
    )
    exclude_fields: list[str] = Field(
        default_factory=list,
        description="Field names never stored in snapshot attributes.",
    )
    identity_field: str = Field(
        default="id", description="Attribute holding a record's id."
    )
    most_changed_limit: int = Field(
        default=10, ge=1, description="Top N fields reported by stats."
    )
    retention: RetentionPolicy = Field(default_factory=RetentionPolicy)
    automatic: AutomaticCapture = Field(default_factory=AutomaticCapture)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "SnapshotConfig":
        """Builds a configuration from environment variables.

        Reads SNAPSHOT_STORAGE, DATABASE_URL, SNAPSHOT_FILE_PATH,
        SNAPSHOT_EXCLUDE_FIELDS (comma-separated) and SNAPSHOT_RETENTION_DAYS.
        """
        env = os.environ if environ is None else environ
        values: dict = {}
        if env.get("SNAPSHOT_STORAGE"):
            values["storage"] = env["SNAPSHOT_STORAGE"].strip().lower()
        if env.get("DATABASE_URL"):
            values["database_url"] = env["DATABASE_URL"]
        if env.get("SNAPSHOT_FILE_PATH"):
            values["file_path"] = env["SNAPSHOT_FILE_PATH"]
        if env.get("SNAPSHOT_EXCLUDE_FIELDS"):
            values["exclude_fields"] = [
                f.strip()
                for f in env["SNAPSHOT_EXCLUDE_FIELDS"].split(",")
                if f.strip()
            ]
        if env.get("SNAPSHOT_RETENTION_DAYS"):
            values["retention"] = RetentionPolicy(
                max_age_days=int(env["SNAPSHOT_RETENTION_DAYS"])
            )
        return cls(**values)

    @classmethod
    def from_yaml(cls, file_path: Union[str, Path]) -> "SnapshotConfig":
        """Loads a configuration from a YAML file.

        The settings may sit at the top level or under a ``snapshot`` key.
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f) or {}
        if isinstance(data.get("snapshot"), dict):
            data = data["snapshot"]
        return cls.model_validate(data)


def build_storage(config: SnapshotConfig) -> SnapshotStorage:
    """Instantiates the backend selected by the configuration."""
    if config.storage == "database":
        return SQLSnapshotStorage(config.database_url)
    if config.storage == "file":
        return FileSnapshotStorage(config.file_path)
    if config.storage == "array":
        return InMemorySnapshotStorage()
    raise ValueError(f"Unsupported storage driver: {config.storage}")
