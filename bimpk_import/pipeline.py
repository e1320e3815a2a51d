"""ImportPipeline — create-or-version import of one source file.

States::

    START -> DETECT -> FRESH | VERSIONED -> [CACHED] -> DONE
                  any stage failure -> FAILED

DETECT looks for a model whose version attributes reference the incoming
file id.  FRESH provisions a new model, VERSIONED versions the existing
one; both then write the extracted graph.  The data cache is a separate
host-scheduled operation (:meth:`ImportPipeline.build_cache`) unless the
caller asks :meth:`ImportPipeline.run` to build it inline.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any

from bimpk_import.cache import CacheBuilder
from bimpk_import.config import MODEL_USER_TYPE, SHORT_NAME_LENGTH
from bimpk_import.errors import BimpkImportError, ImportFailedError
from bimpk_import.extraction.extractor import extract_package
from bimpk_import.locking import ImportLockManager
from bimpk_import.models.package import ImportRequest
from bimpk_import.models.store import ImportResult, ModelEntity
from bimpk_import.provisioning.collections import CollectionProvisioner
from bimpk_import.provisioning.versions import VersionProvisioner
from bimpk_import.store.base import IdGenerator, ItemStore
from bimpk_import.writer import GraphWriter

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    START = "start"
    DETECT = "detect"
    FRESH = "fresh"
    VERSIONED = "versioned"
    CACHED = "cached"
    DONE = "done"
    FAILED = "failed"


class ImportPipeline:
    """Run imports against one item store.

    Parameters
    ----------
    store:
        The versioned item store.
    id_generator:
        Issues internal ids for extracted records.
    lock_manager:
        Serializes imports of the same source file.  With *None*, two
        concurrent imports of one file can both take the FRESH path.
    short_name_length:
        Number of file-name characters used in collection short names.
    """

    def __init__(
        self,
        store: ItemStore,
        id_generator: IdGenerator | None = None,
        lock_manager: ImportLockManager | None = None,
        short_name_length: int = SHORT_NAME_LENGTH,
    ) -> None:
        self.store = store
        self.id_generator = id_generator or IdGenerator()
        self.lock_manager = lock_manager
        self.collection_provisioner = CollectionProvisioner(store, short_name_length)
        self.version_provisioner = VersionProvisioner(store, short_name_length)
        self.writer = GraphWriter(store)
        self.cache_builder = CacheBuilder(store)
        self.state = ImportState.START
        self.history: list[ImportState] = [ImportState.START]

    def _enter(self, state: ImportState) -> None:
        logger.debug("Import state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def detect(self, request: ImportRequest) -> ModelEntity | None:
        """Return the existing model for the request's source file, if any."""
        matches = self.store.find_composite_items(MODEL_USER_TYPE, request.source_file_id)
        if len(matches) > 1:
            logger.warning(
                "Found %d models for file %s, versioning the first",
                len(matches),
                request.source_file_id,
            )
        return matches[0] if matches else None

    def run(self, request: ImportRequest, build_cache: bool = False) -> ImportResult:
        """Import *request*, creating or versioning its model.

        Parameters
        ----------
        request:
            Source file identity and extracted package contents.
        build_cache:
            If *True*, also run the data cache stage before returning.

        Raises
        ------
        BimpkImportError
            The typed error of the failing stage; the pipeline is left in
            the FAILED state.
        """
        self.state = ImportState.START
        self.history = [ImportState.START]
        try:
            if self.lock_manager is None:
                return self._run(request, build_cache)
            with self.lock_manager.hold(request.source_file_id, owner=f"pid-{os.getpid()}"):
                return self._run(request, build_cache)
        except BimpkImportError:
            self._enter(ImportState.FAILED)
            logger.exception("Import of %s failed", request.source_file_name)
            raise
        except Exception as exc:
            self._enter(ImportState.FAILED)
            logger.exception("Import of %s failed", request.source_file_name)
            raise ImportFailedError(f"Import of '{request.source_file_name}' failed: {exc}") from exc

    def _run(self, request: ImportRequest, build_cache: bool) -> ImportResult:
        self._enter(ImportState.DETECT)
        existing = self.detect(request)

        if existing is None:
            self._enter(ImportState.FRESH)
            logger.info("No previous model for %s, creating collections", request.source_file_name)
            extraction = extract_package(request.files, self.id_generator)
            entity, collections = self.collection_provisioner.provision(request)
        else:
            self._enter(ImportState.VERSIONED)
            logger.info("Found previous model %s, creating versions", existing.id)
            extraction = extract_package(request.files, self.id_generator)
            entity, collections = self.version_provisioner.provision(existing, request)

        counts = self.writer.write(entity, collections, extraction)
        result = ImportResult.build(self.state.value, entity, collections, counts)

        if build_cache:
            self._enter(ImportState.CACHED)
            self.cache_builder.build(collections)

        self._enter(ImportState.DONE)
        return result

    def build_cache(self, result: ImportResult | dict[str, Any]) -> list[dict[str, Any]]:
        """Run the data cache stage for a completed import.

        Accepts the :class:`ImportResult` or the outparams dict the host
        passed between stages.
        """
        if not isinstance(result, ImportResult):
            result = ImportResult.from_outparams(result)
        return self.cache_builder.build(result.collections)
