"""Keyed last-write-wins collapse of flat record lists."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from bimpk_import.errors import MalformedInputError

T = TypeVar("T")


def read_field(record: Any, name: str) -> Any:
    """Return ``record[name]`` for mappings, ``record.name`` otherwise, or None."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def normalize_key(key: str) -> str:
    """Strip every ``.`` from *key*: ``"A.B"`` and ``"AB"`` share a slot."""
    return key.replace(".", "")


def collapse_by_key(records: Iterable[T], field: str) -> dict[str, T]:
    """Map the normalized value of *field* to the record carrying it.

    This is not a grouping.  When two records share a normalized key the
    later one silently replaces the earlier, so the result holds exactly
    one record per key: the last one seen in iteration order.  Callers
    lose every other property that shares a display name.

    Raises
    ------
    MalformedInputError
        If a record's *field* is missing or not a string.
    """
    collapsed: dict[str, T] = {}
    for record in records:
        key = read_field(record, field)
        if not isinstance(key, str):
            raise MalformedInputError(
                f"Cannot collapse record on '{field}': expected a string, got {key!r}"
            )
        collapsed[normalize_key(key)] = record
    return collapsed
