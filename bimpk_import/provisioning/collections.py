"""CollectionProvisioner — first-import creation of a model and its collections."""

from __future__ import annotations

import logging

from bimpk_import.config import (
    COLLECTION_INDEXES,
    COLLECTION_ROLES,
    COLLECTION_SPECS,
    MODEL_USER_TYPE,
)
from bimpk_import.errors import ProvisioningError
from bimpk_import.models.package import ImportRequest
from bimpk_import.models.store import (
    CollectionDef,
    CollectionHandle,
    CollectionSet,
    CompositeDef,
    IndexDef,
    ModelEntity,
)
from bimpk_import.store.base import ItemStore

logger = logging.getLogger(__name__)


def collection_def(
    role: str,
    package_name: str,
    package_name_short: str,
    namespaces: list[str],
) -> CollectionDef:
    """Build the definition of the collection playing *role* for one package."""
    name_suffix, short_suffix, description, user_type = COLLECTION_SPECS[role]
    return CollectionDef(
        name=package_name + name_suffix,
        short_name=package_name_short + short_suffix,
        description=description,
        user_type=user_type,
        namespaces=list(namespaces),
    )


def index_defs(role: str) -> list[IndexDef]:
    """Indexes declared for *role*; empty for unindexed collections."""
    return [IndexDef(name=name, key=key) for name, key in COLLECTION_INDEXES.get(role, [])]


def ensure_indexes(store: ItemStore, role: str, collection: CollectionHandle) -> None:
    """Create or recreate the indexes of *role* on *collection*."""
    defs = index_defs(role)
    if defs:
        store.create_or_recreate_index(collection.id, defs)
        logger.debug("Indexed %s collection %s: %s", role, collection.id, [d.name for d in defs])


def create_role_collection(
    store: ItemStore,
    role: str,
    package_name: str,
    package_name_short: str,
    namespaces: list[str],
) -> CollectionHandle:
    """Create one collection with its indexes."""
    collection = store.create_collection(
        collection_def(role, package_name, package_name_short, namespaces)
    )
    ensure_indexes(store, role, collection)
    logger.info("Created %s collection %s", role, collection.id)
    return collection


def find_by_user_type(
    collections: list[CollectionHandle], user_type: str
) -> CollectionHandle | None:
    """Return the first collection tagged *user_type*, or None."""
    return next((c for c in collections if c.user_type == user_type), None)


class CollectionProvisioner:
    """Create the six collections and the owning model entity for a new source file.

    Creation is sequential and never rolled back: a failure part-way
    leaves the collections created so far in the store.

    Parameters
    ----------
    store:
        Item store receiving the collections.
    short_name_length:
        Number of file-name characters used in collection short names.
    """

    def __init__(self, store: ItemStore, short_name_length: int) -> None:
        self.store = store
        self.short_name_length = short_name_length

    def provision(self, request: ImportRequest) -> tuple[ModelEntity, CollectionSet]:
        """Create collections, indexes and the model entity, then link them.

        Raises
        ------
        ProvisioningError
            If any store call fails.
        """
        package_name = request.package_name
        package_name_short = request.package_name_short(self.short_name_length)
        try:
            created = {
                role: create_role_collection(
                    self.store, role, package_name, package_name_short, request.namespaces
                )
                for role in COLLECTION_ROLES
            }
            entity = self.store.create_named_composite_item(
                CompositeDef(
                    name=package_name,
                    short_name=package_name_short + "_modelver",
                    description="BIM model version by transform",
                    user_type=MODEL_USER_TYPE,
                    namespaces=list(request.namespaces),
                    user_attributes=request.file_attributes(),
                )
            )
            collections = CollectionSet(**created)
            self.store.add_related_collections(entity.id, collections.ids())
        except Exception as exc:
            raise ProvisioningError(f"Could not provision model '{package_name}': {exc}") from exc

        logger.info("Created model %s for file %s", entity.id, request.source_file_id)
        return entity, collections
