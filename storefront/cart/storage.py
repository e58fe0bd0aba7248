from __future__ import annotations

import sqlite3
from typing import Dict, Optional, Protocol

from storefront.db.sqlite import storage_get, storage_remove, storage_set
from storefront.exceptions import StorageError


class ClientStorage(Protocol):
    """Key-value string storage local to one client session."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(data or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteClientStorage:
    """Client storage kept in the `client_storage` table, scoped by client id."""

    def __init__(self, db_path: str, client_id: str) -> None:
        self.db_path = db_path
        self.client_id = client_id

    def get_item(self, key: str) -> Optional[str]:
        try:
            return storage_get(self.db_path, self.client_id, key)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(key, str(e)) from e

    def set_item(self, key: str, value: str) -> None:
        try:
            storage_set(self.db_path, self.client_id, key, value)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(key, str(e)) from e

    def remove_item(self, key: str) -> None:
        try:
            storage_remove(self.db_path, self.client_id, key)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(key, str(e)) from e
