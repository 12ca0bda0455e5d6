# storage/db.py
import os
import sqlite3
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".ficlib" / "ficlib.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id                TEXT    PRIMARY KEY,
    schema_version    INTEGER NOT NULL,
    metadata_json     TEXT    NOT NULL,
    last_modified     INTEGER NOT NULL,
    bookmark_block_id TEXT
);

CREATE TABLE IF NOT EXISTS blocks (
    project_id    TEXT    NOT NULL,
    position      INTEGER NOT NULL,
    block_id      TEXT    NOT NULL,
    original      TEXT    NOT NULL,
    translated    TEXT    NOT NULL DEFAULT '',
    type          TEXT    NOT NULL DEFAULT 'text',
    is_edited     INTEGER NOT NULL DEFAULT 0,
    is_favorite   INTEGER NOT NULL DEFAULT 0,
    note          TEXT    NOT NULL DEFAULT '',
    chapter_index INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (project_id, position),
    UNIQUE (project_id, block_id),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys — SQLite las tiene desactivadas por defecto.
    check_same_thread=False: el backup automático lee desde su propio hilo.
    """
    path = db_path or os.environ.get("FICLIB_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")   # mejor performance en lecturas concurrentes
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
