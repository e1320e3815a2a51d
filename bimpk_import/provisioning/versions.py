"""Re-import of a source file as new versions of its model and collections."""

from __future__ import annotations

import logging

from bimpk_import.config import COLLECTION_ROLES, COLLECTION_SPECS, ELEMENTS, TYPES
from bimpk_import.errors import ProvisioningError
from bimpk_import.models.package import ImportRequest
from bimpk_import.models.store import CollectionHandle, CollectionSet, ModelEntity
from bimpk_import.provisioning.collections import ensure_indexes, find_by_user_type
from bimpk_import.provisioning.migrations import BASE_ROLES, apply_migrations
from bimpk_import.store.base import ItemStore

logger = logging.getLogger(__name__)


class VersionProvisioner:
    """Version an existing model and every collection linked to it.

    Collections are located by their external-type tag.  When a model
    holds several collections with the same tag the first one is used.

    Parameters
    ----------
    store:
        Item store holding the model.
    short_name_length:
        Number of file-name characters used in collection short names.
    """

    def __init__(self, store: ItemStore, short_name_length: int) -> None:
        self.store = store
        self.short_name_length = short_name_length

    def _locate(self, entity: ModelEntity) -> dict[str, CollectionHandle]:
        linked = self.store.get_collections_in_composite(entity.id)
        located: dict[str, CollectionHandle] = {}
        for role in COLLECTION_ROLES:
            found = find_by_user_type(linked, COLLECTION_SPECS[role][3])
            if found is not None:
                located[role] = found
        missing = [role for role in BASE_ROLES if role not in located]
        if missing:
            raise ProvisioningError(
                f"Model {entity.id} is missing required collections: {', '.join(missing)}"
            )
        return located

    def provision(
        self, entity: ModelEntity, request: ImportRequest
    ) -> tuple[ModelEntity, CollectionSet]:
        """Migrate, then version the model and its collections.

        Returns the model at its new version and the collection set at
        their new tip versions.  A collection created by a migration is
        returned at version 1 and not versioned again.

        Raises
        ------
        ProvisioningError
            If a required collection is missing or any store call fails.
        """
        try:
            located = self._locate(entity)
            created = apply_migrations(
                self.store,
                list(located.values()),
                request.package_name,
                request.package_name_short(self.short_name_length),
                request.namespaces,
            )

            version = self.store.create_item_version(entity.id)
            self.store.update_item_version(entity.id, version.id, request.file_attributes())
            logger.info("Created model version %d of %s", version.version_number, entity.id)

            handles: dict[str, CollectionHandle] = dict(created)
            for role, collection in located.items():
                coll_version = self.store.create_item_version(collection.id)
                handles[role] = collection.model_copy(
                    update={
                        "version_id": coll_version.id,
                        "version_number": coll_version.version_number,
                    }
                )
                logger.info(
                    "Created %s collection version %d of %s",
                    role,
                    coll_version.version_number,
                    collection.id,
                )

            ensure_indexes(self.store, ELEMENTS, handles[ELEMENTS])
            ensure_indexes(self.store, TYPES, handles[TYPES])

            refreshed = self.store.get_composite_item(entity.id)
        except ProvisioningError:
            raise
        except Exception as exc:
            raise ProvisioningError(f"Could not version model {entity.id}: {exc}") from exc

        return refreshed, CollectionSet(**handles)
