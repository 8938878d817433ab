import sqlite3
from typing import List, Optional

from gestao_clinica.data.db_context import connection, get_db_path
from gestao_clinica.errors import StorageError

# Namespaces das chaves guardadas no sys_meta
ITEMS_PREFIX = "items:"
ARCHIVE_PREFIX = "archive:"
LAST_SYNC_PREFIX = "last_sync:"

EPOCH = "1970-01-01T00:00:00.000000"


class KVStore:
    """Gerencia persistência simples (Chave-Valor), valores sempre string"""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or get_db_path()
        self._init_table()

    def _init_table(self):
        self._execute("""
            CREATE TABLE IF NOT EXISTS sys_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

    def _execute(self, sql: str, params: tuple = ()) -> list:
        try:
            with connection(self.db_path) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Falha no armazenamento local: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        rows = self._execute("SELECT value FROM sys_meta WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def set_item(self, key: str, value: str):
        if not isinstance(value, str):
            raise TypeError("KVStore aceita apenas valores string")
        self._execute(
            "INSERT OR REPLACE INTO sys_meta (key, value) VALUES (?, ?)",
            (key, value),
        )

    def remove_item(self, key: str):
        self._execute("DELETE FROM sys_meta WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> List[str]:
        rows = self._execute(
            "SELECT key FROM sys_meta WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
            (_like_prefix(prefix),),
        )
        return [row[0] for row in rows]

    def get_last_sync(self, resource: str) -> str:
        """Retorna timestamp ISO8601 ou data muito antiga se nunca sincronizou"""
        return self.get_item(LAST_SYNC_PREFIX + resource) or EPOCH

    def set_last_sync(self, resource: str, timestamp: str):
        self.set_item(LAST_SYNC_PREFIX + resource, timestamp)


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"
