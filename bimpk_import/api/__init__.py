"""Host-facing API."""

from bimpk_import.api.facade import ModelImporter

__all__ = ["ModelImporter"]
