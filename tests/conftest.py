"""Shared fixtures: a synthetic design-export package and an in-memory store."""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from bimpk_import.models.package import ImportRequest
from bimpk_import.store.base import IdGenerator
from bimpk_import.store.sqlite import SQLiteItemStore


class CountingIds(IdGenerator):
    """Deterministic 24-hex ids: 000...1, 000...2, ..."""

    def __init__(self) -> None:
        self.count = 0

    def new_id(self, kind: str = "mongo", fmt: str = "hex") -> str:
        self.count += 1
        return f"{self.count:024x}"


_PROPERTY_DEFINITIONS = [
    {"id": "P1", "dName": "Revit Family", "type": "text", "assetCategory": "Doors"},
    {"id": "P2", "dName": "Revit Type", "type": "text", "psDispName": "Identity Data"},
    {"id": "P3", "dName": "Element Id", "type": "int"},
    {"id": "P4", "dName": "Fire.Rating", "type": "text"},
]

_TYPES = [
    {
        "id": "T1",
        "name": "Single Flush",
        "sourceId": "src-T1",
        "properties": [
            {"id": "P1", "name": "family", "val": "Single-Flush"},
            {"id": "P2", "name": "type", "val": "36in x 84in"},
        ],
    },
]

_OBJECTS = [
    {
        "id": "O1",
        "type": "T1",
        "sourceId": "src-O1",
        "relationships": {"host": "W1"},
        "properties": [
            {"id": "P3", "name": "System.elementId", "val": 101},
            {"id": "P4", "name": "rating", "val": "1HR"},
        ],
    },
    {
        "id": "O2",
        "type": "T1",
        "sourceId": "src-O2",
        "properties": [
            {"id": "P3", "name": "System.elementId", "val": 102},
        ],
    },
]


def build_package_file(name: str = "Level 1.rvt") -> dict[str, Any]:
    """One file, one occurrence, type T1 with P1/P2, objects O1/O2 of type T1."""
    return {
        "name": name,
        "occurences": [
            {
                "objects": {
                    "properties": copy.deepcopy(_PROPERTY_DEFINITIONS),
                    "types": copy.deepcopy(_TYPES),
                    "objects": copy.deepcopy(_OBJECTS),
                }
            }
        ],
    }


@pytest.fixture()
def ids() -> CountingIds:
    return CountingIds()


@pytest.fixture()
def store() -> SQLiteItemStore:
    s = SQLiteItemStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def package_file() -> dict[str, Any]:
    return build_package_file()


@pytest.fixture()
def make_request() -> Callable[..., ImportRequest]:
    """Factory for import requests over the synthetic package."""

    def _make(
        file_id: str = "file-001",
        file_version_id: str = "ver-001",
        filename: str = "General Medical - Architecture.bimpk",
        files: list[dict[str, Any]] | None = None,
    ) -> ImportRequest:
        return ImportRequest.model_validate(
            {
                "filename": filename,
                "_fileId": file_id,
                "_fileVersionId": file_version_id,
                "files": files if files is not None else [build_package_file()],
                "namespaces": ["proj_ns"],
            }
        )

    return _make


@pytest.fixture()
def make_package_file() -> Callable[[str], dict[str, Any]]:
    return build_package_file
