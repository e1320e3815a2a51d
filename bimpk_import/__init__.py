"""Normalize design-export packages into a versioned element graph."""

__version__ = "1.0.0"

from bimpk_import.api.facade import ModelImporter
from bimpk_import.cache import CacheBuilder
from bimpk_import.errors import (
    BimpkImportError,
    CacheBuildError,
    ExtractionError,
    GraphWriteError,
    ImportFailedError,
    ImportInProgressError,
    ItemNotFoundError,
    MalformedInputError,
    ProvisioningError,
)
from bimpk_import.extraction import collapse_by_key, extract_package, map_items_as_related
from bimpk_import.locking import ImportLockManager
from bimpk_import.models import ExtractionResult, ImportRequest, ImportResult
from bimpk_import.pipeline import ImportPipeline, ImportState
from bimpk_import.provisioning import CollectionProvisioner, VersionProvisioner
from bimpk_import.settings import ImportSettings, load_settings
from bimpk_import.store import IdGenerator, ItemStore, SQLiteItemStore
from bimpk_import.writer import GraphWriter

__all__ = [
    "__version__",
    # Facade
    "ModelImporter",
    # Pipeline
    "CacheBuilder",
    "CollectionProvisioner",
    "GraphWriter",
    "ImportPipeline",
    "ImportState",
    "VersionProvisioner",
    "collapse_by_key",
    "extract_package",
    "map_items_as_related",
    # Models
    "ExtractionResult",
    "ImportRequest",
    "ImportResult",
    # Store
    "IdGenerator",
    "ItemStore",
    "SQLiteItemStore",
    # Config
    "ImportLockManager",
    "ImportSettings",
    "load_settings",
    # Errors
    "BimpkImportError",
    "CacheBuildError",
    "ExtractionError",
    "GraphWriteError",
    "ImportFailedError",
    "ImportInProgressError",
    "ItemNotFoundError",
    "MalformedInputError",
    "ProvisioningError",
]
