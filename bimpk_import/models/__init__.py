"""Pydantic models for package input, derived records, and store handles."""

from bimpk_import.models.package import (
    ImportRequest,
    RawFile,
    RawObject,
    RawOccurrence,
    RawProperty,
    RawType,
)
from bimpk_import.models.records import (
    ElementRecord,
    ExtractionResult,
    PropertyBag,
    Relationship,
    TypeRecord,
)
from bimpk_import.models.store import (
    CollectionDef,
    CollectionHandle,
    CollectionSet,
    CompositeDef,
    ImportResult,
    IndexDef,
    ItemVersion,
    ModelEntity,
)

__all__ = [
    "CollectionDef",
    "CollectionHandle",
    "CollectionSet",
    "CompositeDef",
    "ElementRecord",
    "ExtractionResult",
    "ImportRequest",
    "ImportResult",
    "IndexDef",
    "ItemVersion",
    "ModelEntity",
    "PropertyBag",
    "RawFile",
    "RawObject",
    "RawOccurrence",
    "RawProperty",
    "RawType",
    "Relationship",
    "TypeRecord",
]
