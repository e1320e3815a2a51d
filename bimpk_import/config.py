"""Global constants: collection roles, type tags, index definitions, property names."""

from __future__ import annotations

# External-type tag of the composite item that owns one imported model
MODEL_USER_TYPE = "bim_model_version"
MODEL_ITEM_CLASS = "NamedCompositeItem"
COLLECTION_ITEM_CLASS = "NamedUserCollection"

# Collection roles, in the order they are linked to the model
ELEMENTS = "elements"
ELEMENT_PROPERTIES = "element_properties"
TYPES = "types"
DATA_CACHE = "data_cache"
GEOMETRY_FILES = "geometry_files"
GEOMETRY_VIEWS = "geometry_views"

COLLECTION_ROLES = (
    ELEMENTS,
    ELEMENT_PROPERTIES,
    TYPES,
    DATA_CACHE,
    GEOMETRY_FILES,
    GEOMETRY_VIEWS,
)

# Role -> (name suffix, short-name suffix, description, external-type tag)
COLLECTION_SPECS: dict[str, tuple[str, str, str, str]] = {
    ELEMENTS: ("_elements", "_ba_elem", "Elements in BA model", "rvt_elements"),
    ELEMENT_PROPERTIES: (
        "_elem_props",
        "_elprops",
        "Element Props in BA model",
        "rvt_element_props",
    ),
    TYPES: ("_type_el", "_type_el", "Type Elements in BA Check model", "rvt_type_elements"),
    GEOMETRY_FILES: (
        "_geom_file",
        "_geom_file",
        "File Collection for Geometry Files",
        "bim_model_geomresources",
    ),
    GEOMETRY_VIEWS: (
        "_geom_view",
        "_geom_view",
        "Geometry Views in Model",
        "bim_model_geomviews",
    ),
    DATA_CACHE: (
        "_data_cache",
        "_data_cache",
        "Data cached about imported model",
        "data_cache",
    ),
}

# Role -> [(index name, key spec)]
COLLECTION_INDEXES: dict[str, list[tuple[str, dict[str, int | str]]]] = {
    ELEMENTS: [
        ("model_els_coll_id", {"id": 1}),
        ("model_els_coll_source_id", {"source_id": 1}),
    ],
    TYPES: [
        ("typeElemsCol_id", {"id": 1}),
        ("typeElemsCol_source_id", {"source_id": 1}),
    ],
    DATA_CACHE: [
        ("dataCacheCol_dataType", {"dataType": "text"}),
    ],
}
INDEX_LANGUAGE = "english"

# Collection schema revisions. Revision 2 introduced the data cache.
SCHEMA_REVISION = 2

# Type-level properties copied onto each element when present
WELL_KNOWN_TYPE_PROPERTIES = {
    "revitFamily": "Revit Family",
    "revitType": "Revit Type",
    "revitCategory": "Revit Category",
}

# Instance property whose whole record is stored on the element
SYSTEM_ELEMENT_ID_PROPERTY = "System.elementId"

# Length of the short package name used in collection short names
SHORT_NAME_LENGTH = 11

# Data cache record type: source file -> distinct package ids
SOURCEFILE_TO_PKG_IDS = "sourcefileToPkgIds"

# Source-file count above which the per-file cache query pattern is logged
CACHE_FANOUT_WARNING = 50
