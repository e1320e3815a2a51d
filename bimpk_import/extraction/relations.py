"""Derive parent -> related-item associations between two record sets."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from bimpk_import.extraction.keys import read_field

P = TypeVar("P")
C = TypeVar("C")


@dataclass
class RelatedItems(Generic[P, C]):
    """One parent and every candidate that matched it."""

    parent_item: P
    related_items: list[C] = field(default_factory=list)


def _walk_path(item: Any, dotted: str) -> Any:
    """Follow a dotted path through nested containers; [] on any missing segment."""
    current = item
    for segment in dotted.split("."):
        current = read_field(current, segment)
        if not current:
            return []
    return current


def resolve_from_values(item: Any, from_field: str) -> list[Any]:
    """Return the values of *from_field* on *item* as a list.

    A direct field wins.  When it is absent and *from_field* contains a
    ``.``, the name is read as a path through nested containers instead.
    ``None`` never counts as a value.
    """
    direct = read_field(item, from_field)
    if not direct and "." in from_field:
        values = _walk_path(item, from_field)
    else:
        values = direct
    if isinstance(values, (list, tuple)):
        return [v for v in values if v is not None]
    return [] if values is None else [values]


class _Membership:
    """Membership by type and value: ``True``, ``1`` and ``1.0`` are three values.

    Hashable values use a set keyed on ``(type, value)``, others a list.
    """

    def __init__(self, values: Iterable[Any]) -> None:
        self._hashed: set[Any] = set()
        self._unhashable: list[Any] = []
        for v in values:
            try:
                self._hashed.add((type(v), v))
            except TypeError:
                self._unhashable.append(v)

    def __contains__(self, value: Any) -> bool:
        try:
            if (type(value), value) in self._hashed:
                return True
        except TypeError:
            pass
        return any(type(u) is type(value) and u == value for u in self._unhashable)

    def __bool__(self) -> bool:
        return bool(self._hashed or self._unhashable)


def map_items_as_related(
    parents: Sequence[P],
    candidates: Sequence[C],
    from_field: str,
    related_field: str,
) -> list[RelatedItems[P, C]]:
    """Pair each parent with the candidates whose *related_field* it references.

    A candidate is related when its *related_field* value is one of the
    parent's *from_field* values.  Matching compares type and value, so
    ``1``, ``"1"`` and ``True`` are all different values.  Parents without
    a match are left out of the result.
    """
    result: list[RelatedItems[P, C]] = []
    for parent in parents:
        wanted = _Membership(resolve_from_values(parent, from_field))
        if not wanted:
            continue
        matches = [c for c in candidates if read_field(c, related_field) in wanted]
        if matches:
            result.append(RelatedItems(parent_item=parent, related_items=matches))
    return result
