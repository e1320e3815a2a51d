"""Precomputed lookups written to a model's data cache."""

from __future__ import annotations

import logging
from typing import Any

from bimpk_import.config import CACHE_FANOUT_WARNING, SOURCEFILE_TO_PKG_IDS
from bimpk_import.errors import CacheBuildError
from bimpk_import.models.store import CollectionSet
from bimpk_import.store.base import ItemStore

logger = logging.getLogger(__name__)


class CacheBuilder:
    """Build the source file -> package ids lookup for an imported model.

    Uses one grouped query when the store supports it.  Otherwise it
    issues one distinct query per source file, which costs a round trip
    per file and is slow for packages with many source files.
    """

    def __init__(self, store: ItemStore) -> None:
        self.store = store

    def _grouped(self, collections: CollectionSet) -> dict[Any, list[Any]]:
        return self.store.get_distinct_grouped(
            collections.elements.id, "source_filename", "package_id"
        )

    def _per_file(self, collections: CollectionSet) -> dict[Any, list[Any]]:
        elements = collections.elements.id
        sourcefiles = self.store.get_distinct(elements, "source_filename")
        if len(sourcefiles) > CACHE_FANOUT_WARNING:
            logger.warning(
                "Building data cache with one query per source file for %d files",
                len(sourcefiles),
            )
        return {
            name: self.store.get_distinct(elements, "package_id", {"source_filename": name})
            for name in sourcefiles
        }

    def build(self, collections: CollectionSet) -> list[dict[str, Any]]:
        """Write one cache record per source file and return the records.

        Raises
        ------
        CacheBuildError
            If any store call fails.
        """
        try:
            if self.store.supports_grouped_distinct:
                by_file = self._grouped(collections)
            else:
                by_file = self._per_file(collections)

            records = [
                {
                    "dataType": SOURCEFILE_TO_PKG_IDS,
                    "data": {"sourcefile": name, "package_ids": package_ids},
                }
                for name, package_ids in by_file.items()
            ]
            self.store.create_items_bulk(collections.data_cache.id, records)
        except Exception as exc:
            raise CacheBuildError(f"Could not build data cache: {exc}") from exc

        logger.info("Created cache data: %d source files to package ids", len(records))
        return records
