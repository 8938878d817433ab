import sqlite3
import os
from contextlib import contextmanager

from gestao_clinica.config import DATABASE_NAME


def get_db_path() -> str:
    """
    Define o caminho correto do banco local dependendo do ambiente.
    No Android usamos o armazenamento interno gravável do app.
    """
    explicit = os.getenv("CLINICA_DB_PATH")
    if explicit:
        return explicit

    if "ANDROID_ARGUMENT" in os.environ:
        storage_path = "/data/data/com.gestaoclinica.app/files"
        return os.path.join(storage_path, DATABASE_NAME)

    # Desenvolvimento Desktop
    return DATABASE_NAME


def create_connection(db_path: str = None) -> sqlite3.Connection:
    """
    Cria conexão com otimizações para escrita frequente e leitura fluida.
    """
    conn = sqlite3.connect(db_path or get_db_path(), timeout=10.0, check_same_thread=False)

    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")

    return conn


@contextmanager
def connection(db_path: str = None):
    """Conexão com commit automático e fechamento garantido."""
    conn = create_connection(db_path)
    try:
        with conn:
            yield conn
    finally:
        conn.close()
