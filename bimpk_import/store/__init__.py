"""Item-store contract and the SQLite implementation."""

from bimpk_import.store.base import IdGenerator, ItemStore
from bimpk_import.store.sqlite import SQLiteItemStore

__all__ = ["IdGenerator", "ItemStore", "SQLiteItemStore"]
