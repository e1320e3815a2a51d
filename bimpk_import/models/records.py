"""Derived records produced by extraction."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bimpk_import.models.package import RawProperty


class TypeRecord(BaseModel):
    """A normalized type definition.

    ``properties`` is keyed by display name with every ``.`` removed.
    """

    model_config = ConfigDict(populate_by_name=True)

    internal_id: str = Field(alias="_id")
    external_id: str | int = Field(alias="id")
    name: str | None = None
    source_id: Any = None
    classification: str | None = Field(default=None, alias="baType")
    properties: dict[str, RawProperty] = Field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ElementRecord(BaseModel):
    """A normalized element extracted from one raw object.

    The persisted document carries scalar and reference fields only; the
    full property map travels separately as a :class:`PropertyBag`.
    """

    model_config = ConfigDict(populate_by_name=True)

    internal_id: str = Field(alias="_id")
    package_id: str | int
    type_id: str | int | None = None
    source_id: Any = None
    relationships: Any = None
    source_filename: str
    classification: str | None = Field(default=None, alias="ba_type")
    family: RawProperty | None = Field(default=None, alias="revitFamily")
    type_name: RawProperty | None = Field(default=None, alias="revitType")
    category: RawProperty | None = Field(default=None, alias="revitCategory")
    system_element_id: RawProperty | None = Field(default=None, alias="systemElementId")
    properties: dict[str, RawProperty] | None = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"properties"})


class PropertyBag(BaseModel):
    """Instance properties of one element, written as related items."""

    model_config = ConfigDict(populate_by_name=True)

    element_internal_id: str = Field(alias="_id")
    properties: dict[str, RawProperty] = Field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Relationship(BaseModel):
    """An element and the type records it resolves to."""

    parent: ElementRecord
    related: list[TypeRecord]

    def related_ids(self) -> list[str]:
        return [t.internal_id for t in self.related]


class ExtractionResult(BaseModel):
    """Everything one extraction run produces, ready for the graph writer."""

    elements: list[ElementRecord] = Field(default_factory=list)
    types: list[TypeRecord] = Field(default_factory=list)
    properties: list[PropertyBag] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "elements": len(self.elements),
            "types": len(self.types),
            "properties": len(self.properties),
            "relationships": len(self.relationships),
        }
