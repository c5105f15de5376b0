"""Normalization of arbitrary inputs into flat attribute mappings.

Three input shapes are recognized and resolved once, here:

* tagged records (pydantic models, dataclasses, plain objects) whose public
  fields become the attributes and whose class name becomes the type tag;
* mappings, copied as-is;
* scalars and sequences, wrapped as ``{"value": ...}``.

Downstream components only ever see the normalized result.
"""

import dataclasses
import inspect
from collections.abc import Mapping, Set
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic_core import PydanticSerializationError, from_json, to_json

from record_snapshots.errors import SerializationError
from record_snapshots.models.base import ModelBase
from record_snapshots.models.snapshot import utcnow


MAPPING_TAG = "mapping"

_SCALAR_TYPES = (
    str,
    bytes,
    bool,
    int,
    float,
    Decimal,
    UUID,
    Enum,
    datetime,
    date,
    time,
    timedelta,
    PurePath,
    type(None),
)


class NormalizedRecord(ModelBase):
    """Result of normalizing one input.

    Attributes:
        attributes: Flat, JSON-native field mapping.
        type_tag: Class name for tagged records, ``mapping`` for mappings, or
            the scalar's type name.
        record_type: Identity type; only set for tagged records.
        record_id: Identity value read from the identity field, if present.
        captured_at: Serialization time (UTC).
    """

    attributes: dict[str, Any] = Field(default_factory=dict)
    type_tag: str = MAPPING_TAG
    record_type: Optional[str] = None
    record_id: Optional[str] = None
    captured_at: datetime = Field(default_factory=utcnow)


def _type_name(value: Any) -> str:
    return type(value).__name__


def _public_fields(value: Any) -> dict[str, Any]:
    """Extracts the visible fields of a tagged record."""
    if isinstance(value, BaseModel):
        return value.model_dump()

    if dataclasses.is_dataclass(value):
        return {
            f.name: getattr(value, f.name)
            for f in dataclasses.fields(value)
            if not f.name.startswith("_")
        }

    fields: dict[str, Any] = {}
    for klass in reversed(type(value).__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if not name.startswith("_") and hasattr(value, name):
                fields[name] = getattr(value, name)

    if hasattr(value, "__dict__"):
        fields.update(
            (k, v) for k, v in vars(value).items() if not k.startswith("_")
        )
    return fields


def _is_introspectable(value: Any) -> bool:
    if inspect.isclass(value) or inspect.ismodule(value):
        return False
    if inspect.isroutine(value) or inspect.isgenerator(value):
        return False
    return hasattr(value, "__dict__") or hasattr(type(value), "__slots__")


def _to_json_native(attributes: dict[str, Any], type_name: str) -> dict[str, Any]:
    try:
        return from_json(to_json(attributes))
    except (PydanticSerializationError, ValueError) as exc:
        raise SerializationError(
            f"Attributes of {type_name} are not serializable: {exc}",
            type_name=type_name,
        ) from exc


class Serializer:
    """Converts inputs into ``NormalizedRecord`` instances.

    Args:
        exclude_fields: Field names dropped from every result (exact,
            case-sensitive match on top-level keys).
        identity_field: Attribute of tagged records holding the record id.
    """

    def __init__(
        self,
        exclude_fields: Iterable[str] = (),
        identity_field: str = "id",
    ):
        self.exclude_fields = frozenset(exclude_fields)
        self.identity_field = identity_field

    def normalize(self, value: Any) -> NormalizedRecord:
        """Normalizes an input into attributes plus descriptive metadata.

        Raises:
            SerializationError: If the input cannot be turned into a mapping.
        """
        if isinstance(value, NormalizedRecord):
            return value

        record_type = None
        record_id = None

        if isinstance(value, Mapping):
            type_tag = MAPPING_TAG
            raw = {str(k): v for k, v in value.items()}
        elif isinstance(value, _SCALAR_TYPES) or isinstance(
            value, (list, tuple, Set)
        ):
            type_tag = _type_name(value)
            raw = {"value": value}
        elif _is_introspectable(value):
            type_tag = record_type = _type_name(value)
            raw = _public_fields(value)
            identity = raw.get(self.identity_field)
            if identity is None:
                identity = getattr(value, self.identity_field, None)
            if identity is not None and not callable(identity):
                record_id = str(identity)
        else:
            raise SerializationError(
                f"Cannot convert {_type_name(value)} to an attribute mapping",
                type_name=_type_name(value),
            )

        for field in self.exclude_fields:
            raw.pop(field, None)

        return NormalizedRecord(
            attributes=_to_json_native(raw, type_tag),
            type_tag=type_tag,
            record_type=record_type,
            record_id=record_id,
        )


def normalize(
    value: Any,
    exclude_fields: Iterable[str] = (),
    identity_field: str = "id",
) -> NormalizedRecord:
    """Normalizes ``value`` with a one-off ``Serializer``."""
    return Serializer(exclude_fields, identity_field).normalize(value)
