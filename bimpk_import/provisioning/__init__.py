"""Provisioning of model entities and their collections: create, migrate, version."""

from bimpk_import.provisioning.collections import CollectionProvisioner
from bimpk_import.provisioning.migrations import MIGRATIONS, SchemaMigration, detect_revision
from bimpk_import.provisioning.versions import VersionProvisioner

__all__ = [
    "MIGRATIONS",
    "CollectionProvisioner",
    "SchemaMigration",
    "VersionProvisioner",
    "detect_revision",
]
