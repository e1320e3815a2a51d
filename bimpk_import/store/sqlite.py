"""Versioned collections and composite items on SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bimpk_import.config import COLLECTION_ITEM_CLASS, MODEL_ITEM_CLASS
from bimpk_import.errors import ItemNotFoundError
from bimpk_import.models.store import (
    CollectionDef,
    CollectionHandle,
    CompositeDef,
    IndexDef,
    ItemVersion,
    ModelEntity,
)
from bimpk_import.store.base import IdGenerator, ItemStore

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS named_items (
    id               TEXT    PRIMARY KEY,
    item_class       TEXT    NOT NULL,
    name             TEXT    NOT NULL,
    short_name       TEXT    NOT NULL,
    description      TEXT    NOT NULL DEFAULT '',
    user_type        TEXT    NOT NULL,
    namespaces_json  TEXT    NOT NULL DEFAULT '[]',
    tip_version_id   TEXT
);
CREATE TABLE IF NOT EXISTS item_versions (
    id                    TEXT    PRIMARY KEY,
    item_id               TEXT    NOT NULL,
    version_number        INTEGER NOT NULL,
    user_attributes_json  TEXT    NOT NULL DEFAULT '{}',
    created_at            TEXT    NOT NULL
);
CREATE TABLE IF NOT EXISTS composite_members (
    composite_id   TEXT    NOT NULL,
    collection_id  TEXT    NOT NULL,
    position       INTEGER NOT NULL,
    PRIMARY KEY (composite_id, collection_id)
);
CREATE TABLE IF NOT EXISTS items (
    row_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    id             TEXT    NOT NULL,
    collection_id  TEXT    NOT NULL,
    version_id     TEXT    NOT NULL,
    data_json      TEXT    NOT NULL
);
CREATE TABLE IF NOT EXISTS item_relations (
    parent_collection_id  TEXT NOT NULL,
    parent_version_id     TEXT NOT NULL,
    parent_item_id        TEXT NOT NULL,
    collection_id         TEXT NOT NULL,
    version_id            TEXT NOT NULL,
    item_id               TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS collection_indexes (
    collection_id     TEXT NOT NULL,
    name              TEXT NOT NULL,
    key_json          TEXT NOT NULL,
    default_language  TEXT NOT NULL,
    PRIMARY KEY (collection_id, name)
);
CREATE INDEX IF NOT EXISTS idx_versions_item ON item_versions(item_id);
CREATE INDEX IF NOT EXISTS idx_items_coll ON items(collection_id, version_id);
CREATE INDEX IF NOT EXISTS idx_relations_parent ON item_relations(parent_collection_id, parent_item_id);
"""


def _json_path(field: str) -> str:
    if '"' in field:
        raise ValueError(f"Invalid field name: {field!r}")
    return f'$."{field}"'


class SQLiteItemStore(ItemStore):
    """Item store backed by a single SQLite database.

    Documents are stored as JSON text and queried with ``json_extract``.

    Parameters
    ----------
    db_path:
        Path to the database file.  Defaults to ``':memory:'``.
    id_generator:
        Source of collection, composite-item and version ids.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        id_generator: IdGenerator | None = None,
    ) -> None:
        self._db_path = str(db_path)
        self._ids = id_generator or IdGenerator()
        self._conn = sqlite3.connect(self._db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    @property
    def supports_grouped_distinct(self) -> bool:
        return True

    def close(self) -> None:
        self._conn.close()

    # -- helpers -----------------------------------------------------------

    def _named_row(self, item_id: str, item_class: str | None = None) -> tuple:
        row = self._conn.execute(
            "SELECT id, item_class, name, short_name, description, user_type, "
            "namespaces_json, tip_version_id FROM named_items WHERE id = ?",
            (item_id,),
        ).fetchone()
        if row is None or (item_class is not None and row[1] != item_class):
            kind = item_class or "named item"
            raise ItemNotFoundError(f"No {kind} with id '{item_id}'")
        return row

    def _version_row(self, version_id: str) -> tuple:
        row = self._conn.execute(
            "SELECT id, item_id, version_number, user_attributes_json, created_at "
            "FROM item_versions WHERE id = ?",
            (version_id,),
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(f"No version with id '{version_id}'")
        return row

    @staticmethod
    def _to_version(row: tuple) -> ItemVersion:
        return ItemVersion(
            id=row[0],
            item_id=row[1],
            version_number=row[2],
            user_attributes=json.loads(row[3]),
            created_at=datetime.fromisoformat(row[4]),
        )

    def _tip_version_id(self, collection_id: str) -> str:
        return self._named_row(collection_id, COLLECTION_ITEM_CLASS)[7]

    def _to_handle(self, row: tuple) -> CollectionHandle:
        version = self._version_row(row[7])
        return CollectionHandle(
            id=row[0],
            name=row[2],
            short_name=row[3],
            description=row[4],
            user_type=row[5],
            namespaces=json.loads(row[6]),
            version_id=row[7],
            version_number=version[2],
        )

    def _to_entity(self, row: tuple) -> ModelEntity:
        version = self._version_row(row[7])
        return ModelEntity(
            id=row[0],
            name=row[2],
            short_name=row[3],
            description=row[4],
            user_type=row[5],
            namespaces=json.loads(row[6]),
            version_id=row[7],
            version_number=version[2],
            user_attributes=json.loads(version[3]),
        )

    def _insert_named(
        self,
        item_class: str,
        definition: CollectionDef,
        user_attributes: Mapping[str, Any] | None = None,
    ) -> tuple:
        item_id = self._ids.new_id()
        version_id = self._ids.new_id()
        self._conn.execute(
            "INSERT INTO named_items (id, item_class, name, short_name, description, "
            "user_type, namespaces_json, tip_version_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                item_id,
                item_class,
                definition.name,
                definition.short_name,
                definition.description,
                definition.user_type,
                json.dumps(definition.namespaces),
                version_id,
            ),
        )
        self._conn.execute(
            "INSERT INTO item_versions (id, item_id, version_number, user_attributes_json, "
            "created_at) VALUES (?, ?, 1, ?, ?)",
            (
                version_id,
                item_id,
                json.dumps(dict(user_attributes or {})),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self._conn.commit()
        return self._named_row(item_id)

    def _item_ids(self, collection_id: str, version_id: str) -> set[str]:
        rows = self._conn.execute(
            "SELECT id FROM items WHERE collection_id = ? AND version_id = ?",
            (collection_id, version_id),
        ).fetchall()
        return {r[0] for r in rows}

    def _where(
        self, collection_id: str, query: Mapping[str, Any] | None
    ) -> tuple[str, list[Any]]:
        clauses = ["collection_id = ?", "version_id = ?"]
        params: list[Any] = [collection_id, self._tip_version_id(collection_id)]
        for key, value in (query or {}).items():
            clauses.append("json_extract(data_json, ?) = ?")
            params.extend([_json_path(key), value])
        return " AND ".join(clauses), params

    # -- named items -------------------------------------------------------

    def create_collection(self, definition: CollectionDef) -> CollectionHandle:
        row = self._insert_named(COLLECTION_ITEM_CLASS, definition)
        logger.debug("Created collection %s (%s)", row[0], definition.user_type)
        return self._to_handle(row)

    def create_or_recreate_index(
        self, collection_id: str, index_defs: Sequence[IndexDef]
    ) -> None:
        self._named_row(collection_id, COLLECTION_ITEM_CLASS)
        self._conn.executemany(
            "INSERT OR REPLACE INTO collection_indexes (collection_id, name, key_json, "
            "default_language) VALUES (?, ?, ?, ?)",
            [
                (collection_id, d.name, json.dumps(d.key), d.default_language)
                for d in index_defs
            ],
        )
        self._conn.commit()

    def create_named_composite_item(self, definition: CompositeDef) -> ModelEntity:
        row = self._insert_named(MODEL_ITEM_CLASS, definition, definition.user_attributes)
        return self._to_entity(row)

    def create_item_version(self, item_id: str) -> ItemVersion:
        row = self._named_row(item_id)
        tip = self._version_row(row[7])
        version_id = self._ids.new_id()
        self._conn.execute(
            "INSERT INTO item_versions (id, item_id, version_number, user_attributes_json, "
            "created_at) VALUES (?, ?, ?, ?, ?)",
            (
                version_id,
                item_id,
                tip[2] + 1,
                tip[3],
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self._conn.execute(
            "UPDATE named_items SET tip_version_id = ? WHERE id = ?", (version_id, item_id)
        )
        self._conn.commit()
        return self._to_version(self._version_row(version_id))

    def update_item_version(
        self, item_id: str, version_id: str, user_attributes: Mapping[str, Any]
    ) -> ItemVersion:
        version = self._version_row(version_id)
        if version[1] != item_id:
            raise ItemNotFoundError(f"Version '{version_id}' does not belong to '{item_id}'")
        self._conn.execute(
            "UPDATE item_versions SET user_attributes_json = ? WHERE id = ?",
            (json.dumps(dict(user_attributes)), version_id),
        )
        self._conn.commit()
        return self._to_version(self._version_row(version_id))

    def find_composite_items(self, user_type: str, file_id: str) -> list[ModelEntity]:
        rows = self._conn.execute(
            "SELECT DISTINCT n.id FROM named_items n "
            "JOIN item_versions v ON v.item_id = n.id "
            "WHERE n.item_class = ? AND n.user_type = ? "
            "AND json_extract(v.user_attributes_json, '$.bimpk.fileId') = ? "
            "ORDER BY n.rowid",
            (MODEL_ITEM_CLASS, user_type, file_id),
        ).fetchall()
        return [self.get_composite_item(r[0]) for r in rows]

    def get_composite_item(self, item_id: str) -> ModelEntity:
        return self._to_entity(self._named_row(item_id, MODEL_ITEM_CLASS))

    def get_collections_in_composite(self, composite_id: str) -> list[CollectionHandle]:
        return [
            self._to_handle(self._named_row(cid, COLLECTION_ITEM_CLASS))
            for cid in self.get_related_collections(composite_id)
        ]

    def get_related_collections(self, composite_id: str) -> list[str]:
        self._named_row(composite_id, MODEL_ITEM_CLASS)
        rows = self._conn.execute(
            "SELECT collection_id FROM composite_members WHERE composite_id = ? "
            "ORDER BY position",
            (composite_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def add_related_collections(
        self, composite_id: str, collection_ids: Sequence[str]
    ) -> None:
        self._named_row(composite_id, MODEL_ITEM_CLASS)
        for cid in collection_ids:
            self._named_row(cid, COLLECTION_ITEM_CLASS)
        self._conn.execute(
            "DELETE FROM composite_members WHERE composite_id = ?", (composite_id,)
        )
        self._conn.executemany(
            "INSERT OR IGNORE INTO composite_members (composite_id, collection_id, position) "
            "VALUES (?, ?, ?)",
            [(composite_id, cid, pos) for pos, cid in enumerate(collection_ids)],
        )
        self._conn.commit()

    def get_item_versions(self, item_id: str) -> list[ItemVersion]:
        self._named_row(item_id)
        rows = self._conn.execute(
            "SELECT id, item_id, version_number, user_attributes_json, created_at "
            "FROM item_versions WHERE item_id = ? ORDER BY version_number",
            (item_id,),
        ).fetchall()
        return [self._to_version(r) for r in rows]

    def list_indexes(self, collection_id: str) -> list[IndexDef]:
        rows = self._conn.execute(
            "SELECT name, key_json, default_language FROM collection_indexes "
            "WHERE collection_id = ? ORDER BY name",
            (collection_id,),
        ).fetchall()
        return [IndexDef(name=r[0], key=json.loads(r[1]), default_language=r[2]) for r in rows]

    # -- items -------------------------------------------------------------

    def create_items_bulk(
        self, collection_id: str, items: Sequence[Mapping[str, Any]]
    ) -> list[str]:
        version_id = self._tip_version_id(collection_id)
        rows: list[tuple[str, str, str, str]] = []
        for item in items:
            doc = dict(item)
            doc.setdefault("_id", self._ids.new_id())
            rows.append((doc["_id"], collection_id, version_id, json.dumps(doc, default=str)))
        self._conn.executemany(
            "INSERT INTO items (id, collection_id, version_id, data_json) VALUES (?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()
        return [r[0] for r in rows]

    def create_items_as_related_bulk(
        self,
        parent_collection_id: str,
        collection_id: str,
        items: Sequence[Mapping[str, Any]],
    ) -> list[str]:
        parent_version = self._tip_version_id(parent_collection_id)
        parents = self._item_ids(parent_collection_id, parent_version)
        missing = [item.get("_id") for item in items if item.get("_id") not in parents]
        if missing:
            raise ItemNotFoundError(
                f"{len(missing)} related items reference unknown parents, e.g. {missing[0]!r}"
            )
        ids = self.create_items_bulk(collection_id, items)
        version_id = self._tip_version_id(collection_id)
        self._conn.executemany(
            "INSERT INTO item_relations (parent_collection_id, parent_version_id, "
            "parent_item_id, collection_id, version_id, item_id) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (parent_collection_id, parent_version, item_id, collection_id, version_id, item_id)
                for item_id in ids
            ],
        )
        self._conn.commit()
        return ids

    def create_relations(
        self,
        parent_collection_id: str,
        collection_id: str,
        relations: Sequence[tuple[str, Sequence[str]]],
    ) -> int:
        parent_version = self._tip_version_id(parent_collection_id)
        version_id = self._tip_version_id(collection_id)
        parents = self._item_ids(parent_collection_id, parent_version)
        children = self._item_ids(collection_id, version_id)

        rows: list[tuple[str, str, str, str, str, str]] = []
        for parent_id, related_ids in relations:
            if parent_id not in parents:
                raise ItemNotFoundError(f"No item '{parent_id}' in collection '{parent_collection_id}'")
            for related_id in related_ids:
                if related_id not in children:
                    raise ItemNotFoundError(f"No item '{related_id}' in collection '{collection_id}'")
                rows.append(
                    (parent_collection_id, parent_version, parent_id, collection_id, version_id, related_id)
                )
        self._conn.executemany(
            "INSERT INTO item_relations (parent_collection_id, parent_version_id, "
            "parent_item_id, collection_id, version_id, item_id) VALUES (?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()
        return len(rows)

    def get_items(
        self,
        collection_id: str,
        query: Mapping[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        where, params = self._where(collection_id, query)
        sql = f"SELECT data_json FROM items WHERE {where} ORDER BY row_id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [json.loads(r[0]) for r in self._conn.execute(sql, params).fetchall()]

    def get_related_items(
        self, parent_collection_id: str, parent_item_id: str, collection_id: str
    ) -> list[dict[str, Any]]:
        parent_version = self._tip_version_id(parent_collection_id)
        version_id = self._tip_version_id(collection_id)
        rows = self._conn.execute(
            "SELECT i.data_json FROM item_relations r "
            "JOIN items i ON i.collection_id = r.collection_id "
            "AND i.version_id = r.version_id AND i.id = r.item_id "
            "WHERE r.parent_collection_id = ? AND r.parent_version_id = ? "
            "AND r.parent_item_id = ? AND r.collection_id = ? AND r.version_id = ? "
            "ORDER BY i.row_id",
            (parent_collection_id, parent_version, parent_item_id, collection_id, version_id),
        ).fetchall()
        return [json.loads(r[0]) for r in rows]

    def get_distinct(
        self,
        collection_id: str,
        field: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[Any]:
        where, params = self._where(collection_id, query)
        sql = (
            "SELECT v FROM ("
            f"SELECT json_extract(data_json, ?) AS v, MIN(row_id) AS first_row "
            f"FROM items WHERE {where} GROUP BY v"
            ") WHERE v IS NOT NULL ORDER BY first_row"
        )
        rows = self._conn.execute(sql, [_json_path(field), *params]).fetchall()
        return [r[0] for r in rows]

    def get_distinct_grouped(
        self, collection_id: str, group_field: str, field: str
    ) -> dict[Any, list[Any]]:
        where, params = self._where(collection_id, None)
        sql = (
            "SELECT g, v FROM ("
            "SELECT json_extract(data_json, ?) AS g, json_extract(data_json, ?) AS v, "
            f"MIN(row_id) AS first_row FROM items WHERE {where} GROUP BY g, v"
            ") WHERE g IS NOT NULL AND v IS NOT NULL ORDER BY first_row"
        )
        grouped: dict[Any, list[Any]] = {}
        for g, v in self._conn.execute(
            sql, [_json_path(group_field), _json_path(field), *params]
        ).fetchall():
            grouped.setdefault(g, []).append(v)
        return grouped
