"""ModelImporter — the operations a host runtime schedules for a model import.

Usage::

    from bimpk_import import ModelImporter

    importer = ModelImporter()
    outparams = importer.upload_bimpk({
        "filename": "General Medical - Architecture.bimpk",
        "_fileId": file_id,
        "_fileVersionId": file_version_id,
        "files": extracted_files,
    })
    importer.create_model_data_cache({"inparams": outparams})
"""

from __future__ import annotations

import logging
from typing import Any

from bimpk_import.locking import ImportLockManager
from bimpk_import.models.package import ImportRequest
from bimpk_import.models.store import ImportResult
from bimpk_import.pipeline import ImportPipeline
from bimpk_import.settings import ImportSettings, load_settings
from bimpk_import.store.base import IdGenerator, ItemStore
from bimpk_import.store.sqlite import SQLiteItemStore

logger = logging.getLogger(__name__)


class ModelImporter:
    """Host-facing entry point for model imports.

    Parameters
    ----------
    settings:
        Resolved configuration.  Loaded from the environment when omitted.
    store:
        Item store to import into.  Defaults to a :class:`SQLiteItemStore`
        at ``settings.store_db``.
    id_generator:
        Issues internal record ids.
    """

    def __init__(
        self,
        settings: ImportSettings | None = None,
        store: ItemStore | None = None,
        id_generator: IdGenerator | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        logging.getLogger("bimpk_import").setLevel(self.settings.log_level)

        self.store = store or SQLiteItemStore(self.settings.store_db)
        lock_manager = (
            ImportLockManager(self.settings.lock_dir, self.settings.lock_timeout)
            if self.settings.lock_dir
            else None
        )
        self.pipeline = ImportPipeline(
            self.store,
            id_generator=id_generator,
            lock_manager=lock_manager,
            short_name_length=self.settings.short_name_length,
        )

    def upload_bimpk(self, inparams: dict[str, Any]) -> dict[str, Any]:
        """Import one extracted package and return the outparams for later stages.

        ``namespaces`` defaults to the configured project namespaces.
        """
        data = dict(inparams)
        data.setdefault("namespaces", self.settings.namespaces)
        request = ImportRequest.model_validate(data)
        result = self.pipeline.run(request)
        logger.info(
            "Imported %s as %s model %s",
            request.source_file_name,
            result.mode,
            result.composite_entity_id,
        )
        return result.to_outparams()

    def create_model_data_cache(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Build the model data cache from a previous stage's outparams.

        *params* is either ``{"inparams": outparams}`` or the outparams dict.
        """
        outparams = params.get("inparams", params)
        return self.pipeline.build_cache(ImportResult.from_outparams(outparams))
