"""Tests for package extraction: key collapse, relation mapping, and the extractor."""

from __future__ import annotations

import pytest

from bimpk_import.errors import ExtractionError, MalformedInputError
from bimpk_import.extraction.extractor import extract_package
from bimpk_import.extraction.keys import collapse_by_key, normalize_key
from bimpk_import.extraction.relations import map_items_as_related, resolve_from_values
from bimpk_import.models.package import ImportRequest, RawFile, RawOccurrence, RawProperty


def _files(*raw: dict) -> list[RawFile]:
    return [RawFile.model_validate(f) for f in raw]


# ---------------------------------------------------------------------------
# Key collapse
# ---------------------------------------------------------------------------


class TestCollapseByKey:
    def test_single_record(self):
        rec = {"dName": "Width", "val": 3}
        assert collapse_by_key([rec], "dName") == {"Width": rec}

    def test_last_record_wins(self):
        first = {"dName": "Width", "val": 1}
        second = {"dName": "Width", "val": 2}
        result = collapse_by_key([first, second], "dName")
        assert len(result) == 1
        assert result["Width"] is second

    def test_dots_removed_from_keys(self):
        dotted = {"dName": "A.B", "val": "dotted"}
        plain = {"dName": "AB", "val": "plain"}
        result = collapse_by_key([dotted, plain], "dName")
        assert list(result) == ["AB"]
        assert result["AB"]["val"] == "plain"

    def test_normalize_key(self):
        assert normalize_key("Fire..Rating.") == "FireRating"

    def test_reads_model_attributes(self):
        prop = RawProperty(id="P1", dName="Pset.Width")
        assert collapse_by_key([prop], "display_name") == {"PsetWidth": prop}

    def test_missing_key_raises(self):
        with pytest.raises(MalformedInputError, match="expected a string"):
            collapse_by_key([{"val": 1}], "dName")

    def test_empty_input(self):
        assert collapse_by_key([], "dName") == {}


# ---------------------------------------------------------------------------
# Relation mapping
# ---------------------------------------------------------------------------


class TestMapItemsAsRelated:
    def test_matches_scalar_field(self):
        parents = [{"type_id": "T1"}, {"type_id": "T2"}]
        candidates = [{"id": "T1"}, {"id": "T3"}]
        result = map_items_as_related(parents, candidates, "type_id", "id")
        assert len(result) == 1
        assert result[0].parent_item is parents[0]
        assert result[0].related_items == [candidates[0]]

    def test_parents_without_matches_are_omitted(self):
        parents = [{"type_id": "X"}, {"type_id": None}, {}]
        candidates = [{"id": "T1"}, {"id": None}]
        assert map_items_as_related(parents, candidates, "type_id", "id") == []

    def test_array_field_collects_every_match(self):
        parents = [{"refs": ["a", "c"]}]
        candidates = [{"k": "a"}, {"k": "b"}, {"k": "c"}]
        result = map_items_as_related(parents, candidates, "refs", "k")
        assert [c["k"] for c in result[0].related_items] == ["a", "c"]

    def test_numeric_and_string_ids_are_distinct(self):
        parents = [{"type_id": 1}]
        candidates = [{"id": "1"}]
        assert map_items_as_related(parents, candidates, "type_id", "id") == []

    def test_bool_and_int_are_distinct(self):
        assert map_items_as_related([{"t": 1}], [{"id": True}], "t", "id") == []
        assert map_items_as_related([{"t": [True]}], [{"id": 1}, {"id": True}], "t", "id")[0].related_items == [
            {"id": True}
        ]

    def test_dotted_path_matches_direct_field(self):
        candidates = [{"id": "x"}, {"id": "y"}, {"id": "z"}]
        nested = {"a": {"b": ["x", "z"]}}
        direct = {"a.b": ["x", "z"]}
        via_path = map_items_as_related([nested], candidates, "a.b", "id")
        via_field = map_items_as_related([direct], candidates, "a.b", "id")
        assert via_path[0].related_items == via_field[0].related_items
        assert [c["id"] for c in via_path[0].related_items] == ["x", "z"]

    def test_dotted_path_missing_segment_resolves_empty(self):
        assert resolve_from_values({"a": {}}, "a.b.c") == []
        assert resolve_from_values({}, "a.b") == []

    def test_unhashable_values(self):
        parents = [{"ref": [{"k": 1}]}]
        candidates = [{"v": {"k": 1}}, {"v": {"k": 2}}]
        result = map_items_as_related(parents, candidates, "ref", "v")
        assert result[0].related_items == [candidates[0]]

    def test_every_matching_parent_present(self):
        parents = [{"t": i % 3} for i in range(9)]
        candidates = [{"id": 0}, {"id": 2}]
        result = map_items_as_related(parents, candidates, "t", "id")
        assert [r.parent_item["t"] for r in result] == [0, 2, 0, 2, 0, 2]


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class TestInputModels:
    def test_nested_occurrence_form(self, package_file):
        raw = RawFile.model_validate(package_file)
        occ = raw.occurrences[0]
        assert [t.id for t in occ.types] == ["T1"]
        assert [o.id for o in occ.objects] == ["O1", "O2"]
        assert occ.properties[0].display_name == "Revit Family"
        assert occ.properties[0].category_hint == "Doors"

    def test_flat_occurrence_form(self):
        occ = RawOccurrence.model_validate(
            {"types": [], "objects": [{"id": "O9", "type": "T9"}], "properties": []}
        )
        assert occ.objects[0].type_id == "T9"

    def test_missing_properties_is_none(self):
        assert RawOccurrence.model_validate({"types": []}).properties is None

    def test_request_wire_names(self, package_file):
        req = ImportRequest.model_validate(
            {
                "filename": "General Medical - Architecture.bimpk",
                "_fileId": "f1",
                "_fileVersionId": "v1",
                "files": [package_file],
            }
        )
        assert req.package_name_short() == "General Med"
        assert req.file_attributes() == {"bimpk": {"fileId": "f1", "fileVersionId": "v1"}}


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class TestExtractPackage:
    def test_counts(self, package_file, ids):
        result = extract_package(_files(package_file), ids)
        assert result.summary() == {
            "elements": 2,
            "types": 1,
            "properties": 2,
            "relationships": 2,
        }

    def test_type_record(self, package_file, ids):
        t = extract_package(_files(package_file), ids).types[0]
        assert t.external_id == "T1"
        assert t.name == "Single Flush"
        assert t.source_id == "src-T1"
        assert t.classification == "Doors"
        assert set(t.properties) == {"Revit Family", "Revit Type"}
        assert t.properties["Revit Type"].pset_display_name == "Identity Data"
        assert t.properties["Revit Family"].source_type == "text"

    def test_internal_ids_are_fresh(self, package_file, ids):
        result = extract_package(_files(package_file), ids)
        internal = [t.internal_id for t in result.types] + [e.internal_id for e in result.elements]
        assert len(set(internal)) == 3
        assert "T1" not in internal

    def test_element_record(self, package_file, ids):
        result = extract_package(_files(package_file), ids)
        o1 = result.elements[0]
        assert o1.package_id == "O1"
        assert o1.type_id == "T1"
        assert o1.source_filename == "Level 1.rvt"
        assert o1.relationships == {"host": "W1"}
        assert o1.classification == "Doors"
        assert o1.family.value == "Single-Flush"
        assert o1.type_name.value == "36in x 84in"
        assert o1.category is None
        assert o1.system_element_id.value == 101
        assert o1.properties is None

    def test_element_document_has_no_property_map(self, package_file, ids):
        doc = extract_package(_files(package_file), ids).elements[0].to_document()
        assert "properties" not in doc
        assert "revitCategory" not in doc
        assert doc["package_id"] == "O1"
        assert doc["ba_type"] == "Doors"
        assert doc["systemElementId"]["val"] == 101

    def test_property_bags_keyed_by_element(self, package_file, ids):
        result = extract_package(_files(package_file), ids)
        bag = result.properties[0]
        assert bag.element_internal_id == result.elements[0].internal_id
        assert set(bag.properties) == {"Element Id", "FireRating"}
        assert bag.properties["FireRating"].value == "1HR"

    def test_relationships(self, package_file, ids):
        result = extract_package(_files(package_file), ids)
        pairs = [(r.parent.package_id, [t.external_id for t in r.related]) for r in result.relationships]
        assert pairs == [("O1", ["T1"]), ("O2", ["T1"])]

    def test_unknown_property_raises(self, package_file, ids):
        package_file["occurences"][0]["objects"]["objects"][0]["properties"].append(
            {"id": "P99", "name": "ghost", "val": 0}
        )
        with pytest.raises(MalformedInputError, match="P99"):
            extract_package(_files(package_file), ids)

    def test_unknown_type_raises(self, package_file, ids):
        package_file["occurences"][0]["objects"]["objects"][1]["type"] = "T404"
        with pytest.raises(MalformedInputError, match="T404"):
            extract_package(_files(package_file), ids)

    def test_malformed_input_is_an_extraction_error(self, package_file, ids):
        package_file["occurences"][0]["objects"]["types"][0]["properties"][0]["id"] = "P404"
        with pytest.raises(ExtractionError):
            extract_package(_files(package_file), ids)

    def test_unexpected_failure_is_wrapped(self, package_file):
        class BrokenIds:
            def new_id(self, kind="mongo", fmt="hex"):
                raise RuntimeError("id service down")

        with pytest.raises(ExtractionError, match="id service down") as info:
            extract_package(_files(package_file), BrokenIds())
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_properties_carry_forward_between_occurrences(self, package_file, ids):
        package_file["occurences"].append(
            {"types": [], "objects": [{"id": "O3", "type": "T1", "properties": [{"id": "P4", "val": "2HR"}]}]}
        )
        result = extract_package(_files(package_file), ids)
        assert result.elements[-1].package_id == "O3"
        assert result.properties[-1].properties["FireRating"].value == "2HR"

    def test_types_resolve_across_files(self, ids, make_package_file):
        first = make_package_file("A.rvt")
        second = make_package_file("B.rvt")
        second["occurences"][0]["objects"]["types"] = []
        result = extract_package(_files(first, second), ids)
        assert [e.source_filename for e in result.elements] == ["A.rvt", "A.rvt", "B.rvt", "B.rvt"]
        assert all(r.related[0].external_id == "T1" for r in result.relationships)

    def test_duplicate_display_names_keep_last(self, package_file, ids):
        occ = package_file["occurences"][0]["objects"]
        occ["properties"].append({"id": "P5", "dName": "FireRating", "type": "text"})
        occ["objects"][0]["properties"].append({"id": "P5", "name": "rating2", "val": "3HR"})
        bag = extract_package(_files(package_file), ids).properties[0]
        assert bag.properties["FireRating"].value == "3HR"

    def test_type_document_keys(self, package_file, ids):
        doc = extract_package(_files(package_file), ids).types[0].to_document()
        assert doc["id"] == "T1"
        assert doc["baType"] == "Doors"
        assert "ba_type" not in doc

    def test_repeated_type_id_is_kept_once(self, ids, make_package_file):
        result = extract_package(_files(make_package_file("A.rvt"), make_package_file("B.rvt")), ids)
        assert [t.external_id for t in result.types] == ["T1"]
        assert len(result.elements) == 4
        first = result.types[0].internal_id
        assert [r.related_ids() for r in result.relationships] == [[first]] * 4

    def test_repeated_type_references_are_still_checked(self, ids, make_package_file):
        second = make_package_file("B.rvt")
        second["occurences"][0]["objects"]["types"][0]["properties"][0]["id"] = "P404"
        with pytest.raises(MalformedInputError, match="P404"):
            extract_package(_files(make_package_file("A.rvt"), second), ids)

    def test_object_property_ids_match_as_strings(self, ids):
        raw = {
            "name": "Level 2.rvt",
            "occurences": [
                {
                    "properties": [
                        {"id": 1, "dName": "Revit Family", "type": "text"},
                        {"id": 3, "dName": "Element Id", "type": "int"},
                        {"id": 4, "dName": "Mark", "type": "text"},
                    ],
                    "types": [{"id": "T1", "properties": [{"id": 1, "val": "Basic Wall"}]}],
                    "objects": [
                        {
                            "id": "O1",
                            "type": "T1",
                            "properties": [{"id": "3", "val": 7}, {"id": "4", "val": "W-01"}],
                        }
                    ],
                }
            ],
        }
        result = extract_package(_files(raw), ids)
        assert set(result.properties[0].properties) == {"Element Id", "Mark"}
        assert result.properties[0].properties["Mark"].value == "W-01"

    def test_type_property_ids_match_exactly(self, ids):
        raw = {
            "name": "Level 2.rvt",
            "occurences": [
                {
                    "properties": [{"id": 1, "dName": "Revit Family", "type": "text"}],
                    "types": [{"id": "T1", "properties": [{"id": "1", "val": "Basic Wall"}]}],
                }
            ],
        }
        with pytest.raises(MalformedInputError, match="type 'T1'"):
            extract_package(_files(raw), ids)
