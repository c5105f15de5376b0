"""Lifecycle capture, statistics and retention.

A recorder captures order updates, the aggregator reports what changed most,
and a retention policy keeps only the newest snapshots per order.
"""

from dataclasses import dataclass

from record_snapshots.config import AutomaticCapture, RetentionPolicy, SnapshotConfig
from record_snapshots.observability.logging import setup_logging
from record_snapshots.persistence.in_memory import InMemorySnapshotStorage
from record_snapshots.service import SnapshotRecorder, SnapshotService


@dataclass
class Order:
    id: int
    status: str
    total: float


def run_example():
    setup_logging("WARNING")
    config = SnapshotConfig(
        storage="array",
        automatic=AutomaticCapture(enabled=True, models={"Order": None}),
    )
    service = SnapshotService(InMemorySnapshotStorage(isolated=True), config)
    recorder = SnapshotRecorder(service)

    order = Order(id=42, status="pending", total=99.0)
    recorder.on_record_event(order, "created")
    for status in ("processing", "completed"):
        order.status = status
        # Labels carry second precision; pass explicit ones for rapid updates
        service.save(order, f"order-42-{status}", "updated")

    print(service.stats(record=order).to_json())

    removed = service.prune(RetentionPolicy(max_age_days=None, max_count=2))
    print(f"Retention removed {removed} snapshot(s)")


if __name__ == "__main__":
    run_example()
