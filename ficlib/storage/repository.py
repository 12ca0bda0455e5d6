# storage/repository.py
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ficlib.errors import ProjectNotFoundError
from ficlib.models import Project
from ficlib.storage.db import get_connection, init_schema
from ficlib.storage.normalizer import (
    SCHEMA_VERSION,
    metadata_to_dict,
    project_to_dict,
    sanitize_project,
)

logger = logging.getLogger(__name__)

BACKUP_TYPE    = "ao3-translator-backup"
BACKUP_VERSION = 1


class Repository:
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.
    Se inyecta explícitamente: no hay almacenamiento global.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        self._lock = threading.RLock()
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def save(self, project: Project) -> None:
        """
        Reemplaza el snapshot completo del proyecto en una sola transacción.
        Atómico: o se guarda todo o no se guarda nada.
        """
        rows = [
            (
                project.id,
                position,
                b.id,
                b.original,
                b.translated,
                b.type.value,
                int(b.is_edited),
                int(b.is_favorite),
                b.note,
                b.chapter_index,
            )
            for position, b in enumerate(project.blocks)
        ]
        metadata_json = json.dumps(metadata_to_dict(project.metadata), ensure_ascii=False)

        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO projects (id, schema_version, metadata_json, last_modified, bookmark_block_id)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    schema_version    = excluded.schema_version,
                    metadata_json     = excluded.metadata_json,
                    last_modified     = excluded.last_modified,
                    bookmark_block_id = excluded.bookmark_block_id
                """,
                (project.id, SCHEMA_VERSION, metadata_json,
                 project.last_modified, project.bookmark_block_id),
            )
            self._conn.execute("DELETE FROM blocks WHERE project_id = ?", (project.id,))
            self._conn.executemany(
                """
                INSERT INTO blocks
                    (project_id, position, block_id, original, translated, type,
                     is_edited, is_favorite, note, chapter_index)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        logger.debug("Proyecto %s guardado (%d bloques)", project.id, len(rows))

    def load(self, project_id: str) -> Project:
        """Carga y normaliza. Lanza ProjectNotFoundError si no existe."""
        data = self._load_raw(project_id)
        if data is None:
            raise ProjectNotFoundError(f"Proyecto no encontrado: {project_id}")
        return sanitize_project(data)

    def get(self, project_id: str) -> Optional[Project]:
        data = self._load_raw(project_id)
        return sanitize_project(data) if data else None

    def list_projects(self) -> list[Project]:
        """Más reciente primero, como el historial de la app."""
        with self._lock:
            ids = [
                row["id"] for row in self._conn.execute(
                    "SELECT id FROM projects ORDER BY last_modified DESC"
                ).fetchall()
            ]
        return [self.load(project_id) for project_id in ids]

    def delete(self, project_id: str) -> bool:
        """Un proyecto solo se destruye entero. Devuelve False si no existía."""
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def export_backup(self, path: Path, settings: Optional[dict[str, Any]] = None) -> Path:
        payload = {
            "type":     BACKUP_TYPE,
            "version":  BACKUP_VERSION,
            "date":     datetime.now(timezone.utc).isoformat(),
            "history":  [project_to_dict(p) for p in self.list_projects()],
            "settings": settings or {},
        }
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("Backup escrito en: %s", path)
        return path

    def import_backup(self, path: Path) -> list[Project]:
        """
        Acepta el envoltorio {"history": [...]} o una lista suelta de proyectos.
        Los ids que ya existen en la base se saltan: un backup viejo nunca
        pisa trabajo más reciente. Devuelve solo lo importado.
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))

        if isinstance(raw, list):
            entries = raw
        elif isinstance(raw, dict) and isinstance(raw.get("history"), list):
            entries = raw["history"]
        else:
            raise ValueError(f"Formato de backup no reconocido: {path}")

        imported = []
        for entry in entries:
            project = sanitize_project(entry)
            if self.get(project.id) is not None:
                logger.info("Proyecto %s ya existe, se omite", project.id)
                continue
            self.save(project)
            imported.append(project)

        logger.info("%d proyectos importados desde %s", len(imported), path)
        return imported

    # ------------------------------------------------------------------
    # Mapeo de rows a dicts (el normalizer construye el Project)
    # ------------------------------------------------------------------

    def _load_raw(self, project_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
            if not row:
                return None
            block_rows = self._conn.execute(
                "SELECT * FROM blocks WHERE project_id = ? ORDER BY position ASC",
                (project_id,),
            ).fetchall()

        return {
            "schema_version":    row["schema_version"],
            "id":                row["id"],
            "last_modified":     row["last_modified"],
            "bookmark_block_id": row["bookmark_block_id"],
            "metadata":          json.loads(row["metadata_json"]),
            "blocks":            [self._row_to_block(r) for r in block_rows],
        }

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "id":            row["block_id"],
            "original":      row["original"],
            "translated":    row["translated"],
            "type":          row["type"],
            "is_edited":     bool(row["is_edited"]),
            "is_favorite":   bool(row["is_favorite"]),
            "note":          row["note"],
            "chapter_index": row["chapter_index"],
        }

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
