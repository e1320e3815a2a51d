"""Input models for a design-export package.

The package arrives as nested JSON: files -> occurrences -> types, objects
and property definitions.  Field aliases follow the export's wire names
(``dName``, ``psDispName``, ``sourceId``...) so a parsed package can be
validated straight from the JSON the file extractor produces.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from bimpk_import.config import SHORT_NAME_LENGTH


class RawProperty(BaseModel):
    """One property record.

    In an occurrence's ``properties`` list this is a property *definition*
    (display name, source type, classification hint).  On a type or object
    it is a *reference* by ``id`` carrying the value.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | int
    name: str | None = None
    value: Any = Field(default=None, alias="val")
    display_name: str | None = Field(default=None, alias="dName")
    source_type: str | None = Field(default=None, alias="type")
    category_hint: str | None = Field(default=None, alias="assetCategory")
    pset_display_name: str | None = Field(default=None, alias="psDispName")


class RawType(BaseModel):
    """A type definition shared by many objects."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | int
    name: str | None = None
    source_id: Any = Field(default=None, alias="sourceId")
    properties: list[RawProperty] = Field(default_factory=list)


class RawObject(BaseModel):
    """An instance object scoped to one source file."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | int
    type_id: str | int | None = Field(default=None, alias="type")
    source_id: Any = Field(default=None, alias="sourceId")
    relationships: Any = None
    properties: list[RawProperty] = Field(default_factory=list)


class RawOccurrence(BaseModel):
    """One grouping of types, objects and property definitions.

    ``properties`` is *None* when the occurrence ships no definition list;
    the extractor then keeps using the previous occurrence's list.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    types: list[RawType] = Field(default_factory=list)
    objects: list[RawObject] = Field(default_factory=list)
    properties: list[RawProperty] | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_nested_objects(cls, data: Any) -> Any:
        # The export nests everything under "objects": {types, objects, properties}
        if isinstance(data, dict) and isinstance(data.get("objects"), dict):
            merged = dict(data)
            nested = merged.pop("objects")
            merged.update(nested)
            return merged
        return data


class RawFile(BaseModel):
    """A source design file inside the package."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    occurrences: list[RawOccurrence] = Field(
        default_factory=list,
        validation_alias=AliasChoices("occurrences", "occurences"),
    )


class ImportRequest(BaseModel):
    """Pipeline input: the source file identity plus its extracted contents."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    source_file_name: str = Field(alias="filename")
    source_file_id: str = Field(alias="_fileId")
    source_file_version_id: str | None = Field(default=None, alias="_fileVersionId")
    files: list[RawFile] = Field(default_factory=list)
    namespaces: list[str] = Field(default_factory=list)

    @property
    def package_name(self) -> str:
        return self.source_file_name

    def package_name_short(self, length: int = SHORT_NAME_LENGTH) -> str:
        """Truncated file name used as the prefix of collection short names."""
        return self.source_file_name[:length]

    def file_attributes(self) -> dict[str, Any]:
        """Version-scoped attributes that tie a model version to its source file."""
        return {
            "bimpk": {
                "fileId": self.source_file_id,
                "fileVersionId": self.source_file_version_id,
            }
        }
