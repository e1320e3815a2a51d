"""Extract a design-export package into elements, types and property bags.

Entry point: ``extract_package(files, id_generator)``

Walks files -> occurrences.  Each occurrence's property definitions are
used to resolve the property references on its types and objects.  Types
accumulate across the whole package, so an object may reference a type
defined in an earlier occurrence or file.  The first definition of a type
id is the only one kept.

Type property references must match a definition id exactly.  Object
property references match on the string form of the id, so ``3`` and
``"3"`` resolve to the same definition.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from bimpk_import.config import SYSTEM_ELEMENT_ID_PROPERTY, WELL_KNOWN_TYPE_PROPERTIES
from bimpk_import.errors import ExtractionError, MalformedInputError
from bimpk_import.extraction.keys import collapse_by_key, normalize_key
from bimpk_import.extraction.relations import map_items_as_related
from bimpk_import.models.package import RawFile, RawObject, RawProperty, RawType
from bimpk_import.models.records import (
    ElementRecord,
    ExtractionResult,
    PropertyBag,
    Relationship,
    TypeRecord,
)
from bimpk_import.store.base import IdGenerator

logger = logging.getLogger(__name__)


def _index_definitions(properties: list[RawProperty]) -> dict[str | int, RawProperty]:
    """Index property definitions by id; the first definition of an id wins."""
    index: dict[str | int, RawProperty] = {}
    for prop in properties:
        index.setdefault(prop.id, prop)
    return index


def _index_definitions_loosely(
    definitions: dict[str | int, RawProperty],
) -> dict[str, RawProperty]:
    """Re-key definitions by the string form of their id, so ``3`` and ``"3"`` share a slot."""
    index: dict[str, RawProperty] = {}
    for key, prop in definitions.items():
        index.setdefault(str(key), prop)
    return index


def _lookup_definition(
    ref: RawProperty,
    definitions: dict[str | int, RawProperty] | dict[str, RawProperty],
    owner: str,
    key: str | int | None = None,
) -> RawProperty:
    definition = definitions.get(ref.id if key is None else key)
    if definition is None:
        raise MalformedInputError(
            f"Property '{ref.id}' on {owner} has no definition in its occurrence"
        )
    return definition


def _resolve_property(ref: RawProperty, definition: RawProperty) -> RawProperty:
    """Copy display name, source type and display-name override onto a reference."""
    update = {
        "display_name": definition.display_name,
        "source_type": definition.source_type,
    }
    if definition.pset_display_name is not None:
        update["pset_display_name"] = definition.pset_display_name
    return ref.model_copy(update=update)


def _build_type(
    raw: RawType,
    definitions: dict[str | int, RawProperty],
    ids: IdGenerator,
) -> TypeRecord:
    owner = f"type '{raw.id}'"
    classification: str | None = None
    props: list[RawProperty] = []
    for ref in raw.properties:
        definition = _lookup_definition(ref, definitions, owner)
        if definition.category_hint is not None:
            classification = definition.category_hint
        props.append(_resolve_property(ref, definition))

    return TypeRecord(
        internal_id=ids.new_id("mongo", "hex"),
        external_id=raw.id,
        name=raw.name,
        source_id=raw.source_id,
        classification=classification,
        properties=collapse_by_key(props, "display_name"),
    )


def _build_element(
    raw: RawObject,
    file_name: str,
    types_by_id: dict[str | int, TypeRecord],
    definitions: dict[str, RawProperty],
    ids: IdGenerator,
) -> tuple[ElementRecord, PropertyBag]:
    owner = f"object '{raw.id}'"
    type_record = types_by_id.get(raw.type_id) if raw.type_id is not None else None
    if type_record is None:
        raise MalformedInputError(f"Type '{raw.type_id}' of {owner} is not in the package")

    extra: dict[str, object] = {}
    for alias, display_name in WELL_KNOWN_TYPE_PROPERTIES.items():
        prop = type_record.properties.get(normalize_key(display_name))
        if prop is not None:
            extra[alias] = prop

    system_element_id: RawProperty | None = None
    props: list[RawProperty] = []
    for ref in raw.properties:
        prop = _resolve_property(ref, _lookup_definition(ref, definitions, owner, str(ref.id)))
        if prop.name == SYSTEM_ELEMENT_ID_PROPERTY:
            system_element_id = prop
        props.append(prop)

    internal_id = ids.new_id("mongo", "hex")
    element = ElementRecord(
        internal_id=internal_id,
        package_id=raw.id,
        type_id=raw.type_id,
        source_id=raw.source_id,
        relationships=raw.relationships,
        source_filename=file_name,
        classification=type_record.classification,
        system_element_id=system_element_id,
        **extra,
    )
    bag = PropertyBag(
        element_internal_id=internal_id,
        properties=collapse_by_key(props, "display_name"),
    )
    return element, bag


def _extract(files: Iterable[RawFile], ids: IdGenerator) -> ExtractionResult:
    result = ExtractionResult()
    types_by_id: dict[str | int, TypeRecord] = {}

    for raw_file in files:
        definitions: dict[str | int, RawProperty] = {}
        instance_definitions: dict[str, RawProperty] = {}
        for occurrence in raw_file.occurrences:
            if occurrence.properties is not None:
                definitions = _index_definitions(occurrence.properties)
                instance_definitions = _index_definitions_loosely(definitions)

            for raw_type in occurrence.types:
                # Built even when the id repeats so its property references are checked
                record = _build_type(raw_type, definitions, ids)
                if record.external_id in types_by_id:
                    continue
                result.types.append(record)
                types_by_id[record.external_id] = record

            for raw_object in occurrence.objects:
                element, bag = _build_element(
                    raw_object, raw_file.name, types_by_id, instance_definitions, ids
                )
                result.elements.append(element)
                result.properties.append(bag)

        logger.debug(
            "Extracted %s: %d elements, %d types so far",
            raw_file.name,
            len(result.elements),
            len(result.types),
        )

    result.relationships = [
        Relationship(parent=pair.parent_item, related=pair.related_items)
        for pair in map_items_as_related(
            result.elements, result.types, "type_id", "external_id"
        )
    ]
    return result


def extract_package(files: Iterable[RawFile], id_generator: IdGenerator) -> ExtractionResult:
    """Normalize every file of a package into one :class:`ExtractionResult`.

    Parameters
    ----------
    files:
        Source files of the package, in import order.
    id_generator:
        Issues the internal id of every type and element record.

    Raises
    ------
    MalformedInputError
        If a property or type reference cannot be resolved.
    ExtractionError
        For any other failure.  No partial result is returned.
    """
    try:
        result = _extract(files, id_generator)
    except ExtractionError as exc:
        logger.error("Data extraction failed: %s", exc)
        raise
    except Exception as exc:
        logger.error("Data extraction failed: %s", exc)
        raise ExtractionError(f"Data extraction failed: {exc}") from exc

    logger.info(
        "Data extraction complete: %d elements, %d types, %d relationships",
        len(result.elements),
        len(result.types),
        len(result.relationships),
    )
    return result
