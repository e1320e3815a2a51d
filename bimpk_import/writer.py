"""GraphWriter — persist an extraction result into a model's collections."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from bimpk_import.errors import GraphWriteError
from bimpk_import.models.records import ExtractionResult
from bimpk_import.models.store import CollectionSet, ModelEntity
from bimpk_import.store.base import ItemStore

logger = logging.getLogger(__name__)


class GraphWriter:
    """Write elements, types, property bags and element->type relations.

    The steps run in a fixed order because each one relies on the items
    written by the previous one.  The first failing step aborts the rest;
    items already written stay in the store.
    """

    def __init__(self, store: ItemStore) -> None:
        self.store = store

    def _step(self, name: str, action: Callable[[], Any]) -> Any:
        try:
            result = action()
        except Exception as exc:
            logger.error("Graph write step %s failed: %s", name, exc)
            raise GraphWriteError(name, str(exc)) from exc
        logger.info("Graph write step %s complete", name)
        return result

    def write(
        self,
        entity: ModelEntity,
        collections: CollectionSet,
        extraction: ExtractionResult,
    ) -> dict[str, int]:
        """Run every write step and return the number of records written per step.

        Raises
        ------
        GraphWriteError
            Naming the step that failed.
        """
        store = self.store
        elements = collections.elements.id
        types = collections.types.id

        self._step(
            "link_collections",
            lambda: store.add_related_collections(entity.id, collections.ids()),
        )
        element_ids = self._step(
            "elements",
            lambda: store.create_items_bulk(
                elements, [e.to_document() for e in extraction.elements]
            ),
        )
        type_ids = self._step(
            "types",
            lambda: store.create_items_bulk(types, [t.to_document() for t in extraction.types]),
        )
        property_ids = self._step(
            "element_properties",
            lambda: store.create_items_as_related_bulk(
                elements,
                collections.element_properties.id,
                [bag.to_document() for bag in extraction.properties],
            ),
        )
        edges = self._step(
            "relations",
            lambda: store.create_relations(
                elements,
                types,
                [(r.parent.internal_id, r.related_ids()) for r in extraction.relationships],
            ),
        )

        counts = {
            "elements": len(element_ids),
            "types": len(type_ids),
            "element_properties": len(property_ids),
            "relations": edges,
        }
        logger.info("Model %s written: %s", entity.id, counts)
        return counts
