"""Basic snapshot capture and comparison.

This example demonstrates how:
1. Mappings and records are normalized and stored under labels.
2. Two snapshots are compared into added/modified/removed fields.
3. Excluded fields never reach storage.
"""

from dataclasses import dataclass

from record_snapshots.config import SnapshotConfig
from record_snapshots.persistence.in_memory import InMemorySnapshotStorage
from record_snapshots.service import SnapshotService


@dataclass
class User:
    id: int
    name: str
    email: str
    password: str


def run_example():
    config = SnapshotConfig(storage="array", exclude_fields=["password"])
    service = SnapshotService(InMemorySnapshotStorage(isolated=True), config)

    print("--- Phase 1: Plain mappings ---")
    service.save({"name": "John", "age": 30}, "A")
    service.save({"name": "John", "age": 31, "city": "Paris"}, "B")
    print(service.diff("A", "B").as_dict())

    print("\n--- Phase 2: Records with identity ---")
    user = User(id=1, name="Ann", email="ann@example.com", password="hunter2")
    before = service.save(user)
    print(f"Saved {before.label} with fields {sorted(before.attributes)}")

    user.email = "ann@example.org"
    print(service.compare_with(before.label, user).as_dict())


if __name__ == "__main__":
    run_example()
