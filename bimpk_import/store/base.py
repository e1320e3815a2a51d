"""Abstract item-store interface and identifier generation."""

from __future__ import annotations

import abc
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from bimpk_import.models.store import (
    CollectionDef,
    CollectionHandle,
    CompositeDef,
    IndexDef,
    ItemVersion,
    ModelEntity,
)


class IdGenerator:
    """Generate 24-character hex identifiers, unique within a run."""

    def new_id(self, kind: str = "mongo", fmt: str = "hex") -> str:
        if fmt != "hex":
            raise ValueError(f"Unsupported id format: {fmt!r}")
        return uuid.uuid4().hex[:24]


class ItemStore(abc.ABC):
    """Versioned store of named collections and composite items.

    Collections and composite items are *named items* with a version
    history.  Items written to a collection belong to its tip version, so
    creating a new collection version starts it empty.
    """

    @property
    def supports_grouped_distinct(self) -> bool:
        """Return *True* if :meth:`get_distinct_grouped` is implemented."""
        return False

    # -- named items -------------------------------------------------------

    @abc.abstractmethod
    def create_collection(self, definition: CollectionDef) -> CollectionHandle:
        """Create a named collection at version 1."""

    @abc.abstractmethod
    def create_or_recreate_index(self, collection_id: str, index_defs: Sequence[IndexDef]) -> None:
        """Create each index, replacing any existing index of the same name."""

    @abc.abstractmethod
    def create_named_composite_item(self, definition: CompositeDef) -> ModelEntity:
        """Create a composite item whose first version carries the user attributes."""

    @abc.abstractmethod
    def create_item_version(self, item_id: str) -> ItemVersion:
        """Create a new tip version of a collection or composite item."""

    @abc.abstractmethod
    def update_item_version(
        self, item_id: str, version_id: str, user_attributes: Mapping[str, Any]
    ) -> ItemVersion:
        """Replace the user attributes of one version."""

    @abc.abstractmethod
    def find_composite_items(self, user_type: str, file_id: str) -> list[ModelEntity]:
        """Return composite items whose version attributes reference *file_id*."""

    @abc.abstractmethod
    def get_composite_item(self, item_id: str) -> ModelEntity:
        """Return the composite item with its tip version attributes."""

    @abc.abstractmethod
    def get_collections_in_composite(self, composite_id: str) -> list[CollectionHandle]:
        """Return the collections linked to a composite item, in link order."""

    @abc.abstractmethod
    def get_related_collections(self, composite_id: str) -> list[str]:
        """Return the ids of the collections linked to a composite item."""

    @abc.abstractmethod
    def add_related_collections(self, composite_id: str, collection_ids: Sequence[str]) -> None:
        """Link collections to a composite item, replacing the previous list."""

    @abc.abstractmethod
    def get_item_versions(self, item_id: str) -> list[ItemVersion]:
        """Return every version of a named item, oldest first."""

    @abc.abstractmethod
    def list_indexes(self, collection_id: str) -> list[IndexDef]:
        """Return the indexes defined on a collection."""

    # -- items -------------------------------------------------------------

    @abc.abstractmethod
    def create_items_bulk(
        self, collection_id: str, items: Sequence[Mapping[str, Any]]
    ) -> list[str]:
        """Insert documents into the collection's tip version and return their ids."""

    @abc.abstractmethod
    def create_items_as_related_bulk(
        self,
        parent_collection_id: str,
        collection_id: str,
        items: Sequence[Mapping[str, Any]],
    ) -> list[str]:
        """Insert documents and relate each to the parent item named by its ``_id``."""

    @abc.abstractmethod
    def create_relations(
        self,
        parent_collection_id: str,
        collection_id: str,
        relations: Sequence[tuple[str, Sequence[str]]],
    ) -> int:
        """Relate existing items: each entry is ``(parent_id, [related_ids])``."""

    @abc.abstractmethod
    def get_items(
        self,
        collection_id: str,
        query: Mapping[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents of the tip version matching top-level *query* fields."""

    @abc.abstractmethod
    def get_related_items(
        self, parent_collection_id: str, parent_item_id: str, collection_id: str
    ) -> list[dict[str, Any]]:
        """Return the items of *collection_id* related to one parent item."""

    @abc.abstractmethod
    def get_distinct(
        self,
        collection_id: str,
        field: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[Any]:
        """Return the distinct values of *field* across the tip version."""

    def get_distinct_grouped(
        self, collection_id: str, group_field: str, field: str
    ) -> dict[Any, list[Any]]:
        """Return ``{group value: distinct values of field}`` in one request.

        Optional.  Callers must check :attr:`supports_grouped_distinct`
        first; stores that leave it *False* raise ``NotImplementedError``.
        """
        raise NotImplementedError(f"{type(self).__name__} has no grouped distinct query")
