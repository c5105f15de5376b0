import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel

from record_snapshots.config import AutomaticCapture, RetentionPolicy, SnapshotConfig
from record_snapshots.errors import NotFoundError, SerializationError
from record_snapshots.models.diff import FieldChange
from record_snapshots.models.snapshot import Snapshot
from record_snapshots.persistence.file_storage import FileSnapshotStorage
from record_snapshots.persistence.in_memory import InMemorySnapshotStorage
from record_snapshots.persistence.sql_repository import SQLSnapshotStorage
from record_snapshots.service import (
    LABEL_TIME_FORMAT,
    SnapshotRecorder,
    SnapshotService,
    build_service,
    generate_label,
)


@dataclass
class User:
    id: int
    name: str
    email: str = "user@example.com"
    password: str = "hunter2"


@dataclass
class Post:
    id: int
    title: str


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


class Account(BaseModel):
    id: int
    owner: str
    opened_at: datetime


TIMESTAMP = r"\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}"


@pytest.fixture
def config():
    return SnapshotConfig(storage="array", exclude_fields=["password"])


@pytest.fixture
def service(config):
    return SnapshotService(InMemorySnapshotStorage(isolated=True), config)


class TestSaveAndLoad:
    def test_diff_between_two_snapshots(self, service):
        service.save({"name": "John", "age": 30}, "A")
        service.save({"name": "John", "age": 31, "city": "Paris"}, "B")

        diff = service.diff("A", "B")
        assert diff.modified == {"age": FieldChange(from_=30, to=31)}
        assert diff.added == {"city": "Paris"}
        assert diff.removed == {}

    def test_diff_missing_labels(self, service):
        with pytest.raises(NotFoundError) as exc:
            service.diff("missing-1", "missing-2")
        assert exc.value.label == "missing-1"
        assert exc.value.labels == ["missing-1", "missing-2"]
        assert "missing-1" in str(exc.value)

    def test_diff_names_second_label_when_only_it_is_missing(self, service):
        service.save({"a": 1}, "A")
        with pytest.raises(NotFoundError) as exc:
            service.diff("A", "B")
        assert exc.value.labels == ["B"]

    def test_excluded_field_never_stored(self, service):
        snap = service.save(User(id=1, name="John"), "u1")
        assert "password" not in snap.attributes
        assert "password" not in service.load("u1").attributes

    def test_identity_and_metadata(self, service):
        snap = service.save(User(id=7, name="Ann"), "u7", metadata={"actor": "admin"})
        assert snap.record_type == "User"
        assert snap.record_id == "7"
        assert snap.type_tag == "User"
        assert snap.metadata == {"actor": "admin"}
        assert snap.event_kind == "manual"

    def test_identity_overrides(self, service):
        snap = service.save({"sku": "A-1"}, "p", record_type="Product", record_id=99)
        assert (snap.record_type, snap.record_id) == ("Product", "99")
        assert snap.type_tag == "mapping"

    def test_metadata_never_diffed(self, service):
        service.save({"a": 1}, "A", metadata={"ip": "1.1.1.1"})
        service.save({"a": 1}, "B", metadata={"ip": "2.2.2.2"})
        assert service.diff("A", "B").is_empty()

    def test_load_or_fail(self, service):
        assert service.load("nope") is None
        with pytest.raises(NotFoundError):
            service.load_or_fail("nope")
        service.save(1, "one")
        assert service.load_or_fail("one").attributes == {"value": 1}

    def test_serialization_failure_stores_nothing(self, service):
        with pytest.raises(SerializationError):
            service.save(object(), "bad")
        assert service.list() == []

    def test_overwrite(self, service):
        service.save({"v": 1}, "same")
        service.save({"v": 2}, "same")
        assert [s.label for s in service.list()] == ["same"]
        assert service.load("same").attributes == {"v": 2}

    def test_compare_with_live_record(self, service):
        user = User(id=1, name="John")
        service.save(user, "before")
        user.name = "Johnny"
        diff = service.compare_with("before", user)
        assert diff.modified == {"name": FieldChange(from_="John", to="Johnny")}
        assert len(service.list()) == 1


class TestLabels:
    def test_generated_manual_label(self, service):
        snap = service.save(User(id=7, name="Ann"))
        assert re.fullmatch(rf"manual-User-7-manual-{TIMESTAMP}", snap.label)
        assert service.load(snap.label) is not None

    def test_generated_label_without_identity(self, service):
        snap = service.save({"a": 1})
        assert re.fullmatch(rf"manual-Model-unknown-manual-{TIMESTAMP}", snap.label)

    def test_auto_label(self, service):
        snap = service.save_auto(User(id=3, name="B"), "updated")
        assert re.fullmatch(rf"auto-User-3-updated-{TIMESTAMP}", snap.label)
        assert snap.event_kind == "updated"

    def test_scheduled_label(self, service):
        snap = service.save_scheduled(User(id=3, name="B"))
        assert re.fullmatch(rf"scheduled-User-3-daily-{TIMESTAMP}", snap.label)
        assert snap.event_kind == "scheduled"

        explicit = service.save_scheduled(User(id=3, name="B"), "nightly", frequency="weekly")
        assert explicit.label == "nightly"

    def test_scheduled_label_matches_captured_at(self, service):
        snap = service.save_scheduled(User(id=3, name="B"))
        assert snap.label.endswith(snap.captured_at.strftime(LABEL_TIME_FORMAT))
        assert "password" not in snap.attributes

    def test_generate_label_format(self):
        at = datetime(2026, 10, 19, 8, 5, 3, tzinfo=timezone.utc)
        assert generate_label("Order", "12", "deleted", at) == "auto-Order-12-deleted-2026-10-19-08-05-03"
        assert generate_label(None, None, "manual", at, prefix="x") == "x-Model-unknown-manual-2026-10-19-08-05-03"


class TestRestore:
    def test_dataclass_restored_in_place(self, service):
        user = User(id=1, name="Ann", email="ann@example.com")
        service.save(user, "before")
        user.name = "Changed"
        user.email = "changed@example.com"
        user.password = "new-secret"

        restored = service.restore("before", user)

        assert restored is user
        assert user.name == "Ann"
        assert user.email == "ann@example.com"
        # Excluded fields were never stored, so they keep their value
        assert user.password == "new-secret"

    def test_frozen_dataclass_is_copied(self, service):
        tag = Tag(id=1, name="old")
        service.save(tag, "T")
        restored = service.restore("T", Tag(id=1, name="new"))
        assert restored == Tag(id=1, name="old")

    def test_pydantic_model_is_revalidated(self, service):
        opened = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        service.save(Account(id=9, owner="Ann", opened_at=opened), "acc")
        current = Account(id=9, owner="Bob", opened_at=opened + timedelta(days=1))

        restored = service.restore("acc", current)

        assert restored is not current
        assert restored.owner == "Ann"
        assert restored.opened_at == opened
        assert current.owner == "Bob"

    def test_mapping_updated_in_place(self, service):
        service.save({"a": 1, "b": 2}, "M")
        record = {"a": 5}
        assert service.restore("M", record) == {"a": 1, "b": 2}
        assert record == {"a": 1, "b": 2}

    def test_missing_label(self, service):
        with pytest.raises(NotFoundError) as exc:
            service.restore("nope", User(id=1, name="Ann"))
        assert exc.value.label == "nope"

    def test_type_mismatch(self, service):
        service.save(Post(id=1, title="Hello"), "P")
        with pytest.raises(ValueError):
            service.restore("P", User(id=1, name="Ann"))


class TestPassThrough:
    def test_clear_by_type(self, service):
        service.save(User(id=1, name="a"), "u1")
        service.save(User(id=2, name="b"), "u2")
        service.save(Post(id=1, title="t"), "p1")

        assert service.clear("User") == 2
        assert [s.label for s in service.list()] == ["p1"]

    def test_delete(self, service):
        service.save({"a": 1}, "A")
        assert service.delete("A") is True
        assert service.delete("A") is False

    def test_timeline_and_latest(self, service):
        for i, name in enumerate(["a", "b", "c"]):
            service.save(User(id=1, name=name), f"u1-{i}")
        service.save(User(id=2, name="z"), "u2-0")

        assert [s.label for s in service.timeline("User", 1)] == ["u1-2", "u1-1", "u1-0"]
        assert service.latest("User", 1).attributes["name"] == "c"
        assert service.latest("Post", 1) is None

    def test_set_storage(self, service):
        service.save({"a": 1}, "A")
        replacement = InMemorySnapshotStorage(isolated=True)
        service.set_storage(replacement)
        assert service.storage is replacement
        assert service.load("A") is None


class TestRoundTrip:
    @pytest.fixture(params=["array", "file", "database"])
    def any_service(self, request, tmp_path, config):
        storages = {
            "array": lambda: InMemorySnapshotStorage(isolated=True),
            "file": lambda: FileSnapshotStorage(tmp_path / "snaps"),
            "database": lambda: SQLSnapshotStorage("sqlite:///:memory:"),
        }
        return SnapshotService(storages[request.param](), config)

    @pytest.mark.parametrize(
        "record",
        [
            {"name": "John", "age": 30, "tags": ("a", "b"), "when": datetime(2026, 1, 1)},
            User(id=1, name="John"),
            42,
            "plain text",
            None,
            [1, {"nested": True}],
        ],
    )
    def test_load_returns_normalized_attributes(self, any_service, record):
        expected = any_service.serializer.normalize(record).attributes
        label = any_service.save(record, "rt").label
        assert any_service.load(label).attributes == expected

    def test_clear_filter(self, any_service):
        any_service.save(User(id=1, name="a"), "u1")
        any_service.save(Post(id=1, title="t"), "p1")
        any_service.save({"raw": True}, "raw")

        assert any_service.clear("User") == 1
        remaining = {s.label for s in any_service.list()}
        assert remaining == {"p1", "raw"}


class TestPrune:
    NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)

    def _store(self, service, label, days_ago, record_id="1"):
        service.storage.save(
            label,
            Snapshot(
                label=label,
                record_type="User",
                record_id=record_id,
                captured_at=self.NOW - timedelta(days=days_ago),
            ),
        )

    def test_prune_by_age(self, service):
        self._store(service, "fresh", 1)
        self._store(service, "stale", 45)

        removed = service.prune(RetentionPolicy(max_age_days=30), now=self.NOW)
        assert removed == 1
        assert [s.label for s in service.list()] == ["fresh"]

    def test_prune_by_count_per_identity(self, service):
        for i in range(4):
            self._store(service, f"u1-{i}", days_ago=i)
        self._store(service, "u2-0", days_ago=3, record_id="2")

        removed = service.prune(RetentionPolicy(max_age_days=None, max_count=2), now=self.NOW)
        assert removed == 2
        assert {s.label for s in service.list()} == {"u1-0", "u1-1", "u2-0"}

    def test_disabled_policy(self, service):
        self._store(service, "stale", 400)
        assert service.prune(RetentionPolicy(enabled=False), now=self.NOW) == 0
        assert len(service.list()) == 1

    def test_uses_configured_policy(self):
        config = SnapshotConfig(storage="array", retention=RetentionPolicy(max_age_days=10))
        service = SnapshotService(InMemorySnapshotStorage(isolated=True), config)
        self._store(service, "old", 11)
        assert service.prune(now=self.NOW) == 1


class TestConstruction:
    def test_default_backend_is_database(self):
        service = SnapshotService(config=SnapshotConfig(database_url="sqlite:///:memory:"))
        assert isinstance(service.storage, SQLSnapshotStorage)

    def test_from_config(self, tmp_path):
        config = SnapshotConfig(storage="file", file_path=str(tmp_path / "snaps"))
        service = SnapshotService.from_config(config)
        assert isinstance(service.storage, FileSnapshotStorage)
        service.save({"a": 1}, "A")
        assert (tmp_path / "snaps" / "A.json").exists()

    def test_build_service(self, tmp_path):
        config = SnapshotConfig(
            storage="file",
            file_path=str(tmp_path / "snaps"),
            exclude_fields=["password"],
        )
        service = build_service(config)
        assert isinstance(service.storage, FileSnapshotStorage)
        assert service.config is config
        snap = service.save(User(id=1, name="Ann"), "A")
        assert "password" not in snap.attributes

    def test_build_service_from_env(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_STORAGE", "array")
        monkeypatch.setenv("SNAPSHOT_EXCLUDE_FIELDS", "email")
        service = build_service()
        assert isinstance(service.storage, InMemorySnapshotStorage)
        assert service.serializer.exclude_fields == frozenset({"email"})


class TestRecorder:
    @pytest.fixture
    def recorder(self, service):
        automatic = AutomaticCapture(enabled=True, models={"User": None, "Post": ["created"]})
        return SnapshotRecorder(service, automatic, metadata_provider=lambda: {"actor": "system"})

    def test_captures_configured_events(self, recorder, service):
        snap = recorder.on_record_event(User(id=1, name="a"), "updated")
        assert snap is not None
        assert snap.event_kind == "updated"
        assert snap.label.startswith("auto-User-1-updated-")
        assert snap.metadata == {"actor": "system"}
        assert service.load(snap.label) is not None

    def test_ignores_unconfigured_events_and_types(self, recorder, service):
        assert recorder(Post(id=1, title="t"), "deleted") is None
        assert recorder({"a": 1}, "created") is None
        assert recorder(Post(id=1, title="t"), "created") is not None
        assert len(service.list()) == 1

    def test_disabled_capture(self, service):
        recorder = SnapshotRecorder(service)
        assert recorder.on_record_event(User(id=1, name="a"), "created") is None
