"""Interchangeable storage backends.

The same calls run against the in-memory, file and database backends.
"""

import tempfile

from record_snapshots.persistence.file_storage import FileSnapshotStorage
from record_snapshots.persistence.in_memory import InMemorySnapshotStorage
from record_snapshots.persistence.sql_repository import SQLSnapshotStorage
from record_snapshots.service import SnapshotService


def exercise(service: SnapshotService):
    service.save({"sku": "A-1", "stock": 5}, "inventory-1", record_type="Product", record_id="A-1")
    service.save({"sku": "A-1", "stock": 3}, "inventory-2", record_type="Product", record_id="A-1")
    service.save({"title": "Hello"}, "post-1", record_type="Post", record_id="1")

    for summary in service.list():
        print(f"  {summary.label}: {summary.record_type} #{summary.record_id}")
    print(f"  diff: {service.diff('inventory-1', 'inventory-2').as_dict()}")
    print(f"  cleared {service.clear('Product')} Product snapshots")


def run_example():
    with tempfile.TemporaryDirectory() as tmp:
        backends = [
            InMemorySnapshotStorage(isolated=True),
            FileSnapshotStorage(f"{tmp}/snapshots"),
            SQLSnapshotStorage(f"sqlite:///{tmp}/snapshots.db"),
        ]
        for storage in backends:
            print(f"--- {storage!r} ---")
            exercise(SnapshotService(storage))


if __name__ == "__main__":
    run_example()
