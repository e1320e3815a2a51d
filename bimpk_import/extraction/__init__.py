"""Package extraction: key collapse, relation mapping and record normalization."""

from bimpk_import.extraction.extractor import extract_package
from bimpk_import.extraction.keys import collapse_by_key, normalize_key
from bimpk_import.extraction.relations import RelatedItems, map_items_as_related

__all__ = [
    "RelatedItems",
    "collapse_by_key",
    "extract_package",
    "map_items_as_related",
    "normalize_key",
]
