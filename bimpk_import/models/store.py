"""Models for item-store definitions and handles."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bimpk_import.config import (
    DATA_CACHE,
    ELEMENT_PROPERTIES,
    ELEMENTS,
    GEOMETRY_FILES,
    GEOMETRY_VIEWS,
    INDEX_LANGUAGE,
    TYPES,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IndexDef(BaseModel):
    """A named field index on a collection."""

    name: str
    key: dict[str, int | str]
    default_language: str = INDEX_LANGUAGE

    @property
    def is_text(self) -> bool:
        return any(v == "text" for v in self.key.values())


class CollectionDef(BaseModel):
    """Definition used to create a named collection."""

    name: str
    short_name: str
    description: str = ""
    user_type: str
    namespaces: list[str] = Field(default_factory=list)


class CompositeDef(CollectionDef):
    """Definition of a named composite item with first-version attributes."""

    user_attributes: dict[str, Any] = Field(default_factory=dict)


class ItemVersion(BaseModel):
    """One version of a named item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    item_id: str
    version_number: int = Field(alias="_version")
    user_attributes: dict[str, Any] = Field(default_factory=dict, alias="_userAttributes")
    created_at: datetime = Field(default_factory=_utc_now)


class CollectionHandle(BaseModel):
    """A durable collection as returned by the item store."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_userItemId")
    name: str = Field(alias="_name")
    short_name: str = Field(alias="_shortName")
    description: str = Field(default="", alias="_description")
    user_type: str = Field(alias="_userType")
    namespaces: list[str] = Field(default_factory=list, alias="_namespaces")
    version_id: str | None = Field(default=None, alias="_tipId")
    version_number: int = Field(default=1, alias="_tipVersion")


class ModelEntity(BaseModel):
    """The composite item that owns one imported source file's collections."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = Field(alias="_name")
    short_name: str = Field(alias="_shortName")
    description: str = Field(default="", alias="_description")
    user_type: str = Field(alias="_userType")
    namespaces: list[str] = Field(default_factory=list, alias="_namespaces")
    version_id: str | None = Field(default=None, alias="_tipId")
    version_number: int = Field(default=1, alias="_tipVersion")
    user_attributes: dict[str, Any] = Field(default_factory=dict, alias="_userAttributes")

    @property
    def file_id(self) -> str | None:
        return self.user_attributes.get("bimpk", {}).get("fileId")

    @property
    def file_version_id(self) -> str | None:
        return self.user_attributes.get("bimpk", {}).get("fileVersionId")


class CollectionSet(BaseModel):
    """The six collections linked to a model, addressed by role.

    Aliases are the keys the host runtime passes between stages.
    """

    model_config = ConfigDict(populate_by_name=True)

    elements: CollectionHandle = Field(alias="model_els_coll")
    element_properties: CollectionHandle = Field(alias="model_els_props_coll")
    types: CollectionHandle = Field(alias="model_type_el_coll")
    data_cache: CollectionHandle = Field(alias="data_cache_coll")
    geometry_files: CollectionHandle = Field(alias="model_geom_file_coll")
    geometry_views: CollectionHandle = Field(alias="model_geom_views_coll")

    def by_role(self, role: str) -> CollectionHandle:
        return {
            ELEMENTS: self.elements,
            ELEMENT_PROPERTIES: self.element_properties,
            TYPES: self.types,
            DATA_CACHE: self.data_cache,
            GEOMETRY_FILES: self.geometry_files,
            GEOMETRY_VIEWS: self.geometry_views,
        }[role]

    def ids(self) -> list[str]:
        """Collection ids in link order."""
        return [
            self.elements.id,
            self.element_properties.id,
            self.types.id,
            self.data_cache.id,
            self.geometry_files.id,
            self.geometry_views.id,
        ]


class ImportResult(BaseModel):
    """Handles produced by a completed import."""

    mode: str
    """'fresh' or 'versioned'."""

    composite_entity_id: str
    composite_version_id: str | None = None
    elements_collection_id: str
    types_collection_id: str
    geometry_files_collection_id: str
    geometry_views_collection_id: str
    collections: CollectionSet
    counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        mode: str,
        entity: ModelEntity,
        collections: CollectionSet,
        counts: dict[str, int] | None = None,
    ) -> ImportResult:
        return cls(
            mode=mode,
            composite_entity_id=entity.id,
            composite_version_id=entity.version_id,
            elements_collection_id=collections.elements.id,
            types_collection_id=collections.types.id,
            geometry_files_collection_id=collections.geometry_files.id,
            geometry_views_collection_id=collections.geometry_views.id,
            collections=collections,
            counts=counts or {},
        )

    def to_outparams(self) -> dict[str, Any]:
        """Render the host output record consumed by the cache stage."""
        return {
            "filecolid": self.geometry_files_collection_id,
            "viewcolid": self.geometry_views_collection_id,
            "compositeitemid": self.composite_entity_id,
            "elementscolid": self.elements_collection_id,
            "typescolid": self.types_collection_id,
            "myCollections": self.collections.model_dump(by_alias=True, mode="json"),
        }

    @classmethod
    def from_outparams(cls, outparams: dict[str, Any], mode: str = "fresh") -> ImportResult:
        collections = CollectionSet.model_validate(outparams["myCollections"])
        return cls(
            mode=mode,
            composite_entity_id=outparams["compositeitemid"],
            elements_collection_id=collections.elements.id,
            types_collection_id=collections.types.id,
            geometry_files_collection_id=outparams.get("filecolid", collections.geometry_files.id),
            geometry_views_collection_id=outparams.get("viewcolid", collections.geometry_views.id),
            collections=collections,
        )
