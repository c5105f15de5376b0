"""Shallow comparison of attribute mappings."""

from typing import Any

from record_snapshots.models.diff import DiffResult, FieldChange


def _strictly_equal(a: Any, b: Any) -> bool:
    # No numeric coercion at any depth: 1, 1.0 and True are all different.
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(
            _strictly_equal(a[k], b[k]) for k in a
        )
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(
            _strictly_equal(x, y) for x, y in zip(a, b)
        )
    return a == b


def compute_diff(source: dict[str, Any], target: dict[str, Any]) -> DiffResult:
    """Classifies how ``target`` differs from ``source``.

    Nested mappings and sequences are compared wholesale: an internal change
    yields a single ``modified`` entry for the top-level field.

    Args:
        source: Attributes of the earlier snapshot.
        target: Attributes of the later snapshot.

    Returns:
        A DiffResult whose fields keep the scan order of the inputs.
    """
    added: dict[str, Any] = {}
    modified: dict[str, FieldChange] = {}
    removed: dict[str, Any] = {}

    for key, value in target.items():
        if key not in source:
            added[key] = value
        elif not _strictly_equal(source[key], value):
            modified[key] = FieldChange(from_=source[key], to=value)

    for key, value in source.items():
        if key not in target:
            removed[key] = value

    return DiffResult(added=added, modified=modified, removed=removed)
