"""Exception hierarchy for model imports."""

from __future__ import annotations


class BimpkImportError(Exception):
    """Base class for all import failures."""


class ExtractionError(BimpkImportError):
    """Raised when extraction aborts. The original failure is chained as ``__cause__``."""


class MalformedInputError(ExtractionError):
    """Raised when the package references a type or property that cannot be resolved."""


class ProvisioningError(BimpkImportError):
    """Raised when collection, index, or model creation/versioning fails.

    Creation is not rolled back, so the store may hold a partially
    provisioned model after this error.
    """


class GraphWriteError(BimpkImportError):
    """Raised when one of the ordered graph write steps fails."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Graph write step '{step}' failed: {message}")
        self.step = step


class CacheBuildError(BimpkImportError):
    """Raised when the data cache cannot be built."""


class ImportInProgressError(BimpkImportError):
    """Raised when another run holds the import lock for the same source file."""


class ImportFailedError(BimpkImportError):
    """Raised by the pipeline for unexpected errors outside the typed taxonomy."""


class ItemNotFoundError(BimpkImportError):
    """Raised when the item store has no item with the requested id."""
