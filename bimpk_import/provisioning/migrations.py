"""Collection-schema migrations for models created by older importers.

A model created at schema revision 1 owns five collections.  Revision 2
added the data cache.  Before versioning an existing model the pending
migrations are applied in order, so every versioned model ends up with
the full collection set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bimpk_import.config import (
    COLLECTION_SPECS,
    DATA_CACHE,
    ELEMENT_PROPERTIES,
    ELEMENTS,
    GEOMETRY_FILES,
    GEOMETRY_VIEWS,
    SCHEMA_REVISION,
    TYPES,
)
from bimpk_import.models.store import CollectionHandle
from bimpk_import.provisioning.collections import create_role_collection, find_by_user_type
from bimpk_import.store.base import ItemStore

logger = logging.getLogger(__name__)

# Collections every model has owned since revision 1
BASE_ROLES = (ELEMENTS, ELEMENT_PROPERTIES, TYPES, GEOMETRY_FILES, GEOMETRY_VIEWS)


@dataclass(frozen=True)
class SchemaMigration:
    """A revision that introduced one collection role."""

    revision: int
    role: str
    description: str

    @property
    def user_type(self) -> str:
        return COLLECTION_SPECS[self.role][3]


MIGRATIONS: tuple[SchemaMigration, ...] = (
    SchemaMigration(2, DATA_CACHE, "Add the model data cache collection"),
)


def detect_revision(collections: list[CollectionHandle]) -> int:
    """Infer a model's schema revision from the type tags of its collections."""
    revision = 1
    for migration in sorted(MIGRATIONS, key=lambda m: m.revision):
        if find_by_user_type(collections, migration.user_type) is None:
            break
        revision = migration.revision
    return revision


def pending_migrations(collections: list[CollectionHandle]) -> list[SchemaMigration]:
    current = detect_revision(collections)
    return [m for m in sorted(MIGRATIONS, key=lambda m: m.revision) if m.revision > current]


def apply_migrations(
    store: ItemStore,
    collections: list[CollectionHandle],
    package_name: str,
    package_name_short: str,
    namespaces: list[str],
) -> dict[str, CollectionHandle]:
    """Create the collections of every pending migration.

    Returns the newly created collections keyed by role.  A migration
    whose collection already exists is skipped.
    """
    created: dict[str, CollectionHandle] = {}
    for migration in pending_migrations(collections):
        if find_by_user_type(collections, migration.user_type) is not None:
            continue
        logger.info(
            "Migrating model collections to revision %d: %s",
            migration.revision,
            migration.description,
        )
        created[migration.role] = create_role_collection(
            store, migration.role, package_name, package_name_short, namespaces
        )
    if created:
        logger.info("Model collections now at schema revision %d", SCHEMA_REVISION)
    return created
