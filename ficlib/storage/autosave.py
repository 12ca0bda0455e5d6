# storage/autosave.py
import logging
import re
import threading
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from ficlib.storage.repository import Repository

logger = logging.getLogger(__name__)

_DEFAULT_BACKUP_DIR = Path.home() / ".ficlib" / "backups"

_UNSAFE_FILENAME_RE = re.compile(r"[^a-z0-9_\-.]", re.IGNORECASE)


def safe_backup_name(filename: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", filename)


class AutoBackup:
    """
    Backup periódico de todos los proyectos a disco.

    Tarea explícita y cancelable: el host la arranca y la detiene
    (start/stop). Corre en su propio hilo y no sabe nada del Scheduler.
    """

    def __init__(
        self,
        repo:             Repository,
        backup_dir:       Optional[Path] = None,
        interval_minutes: float          = 30,
        today:            Callable[[], date] = date.today,
    ):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes debe ser positivo")
        self._repo       = repo
        self._backup_dir = Path(backup_dir or _DEFAULT_BACKUP_DIR)
        self._interval   = interval_minutes * 60
        self._today      = today
        self._stop       = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target = self._loop,
            name   = "ficlib-autobackup",
            daemon = True,
        )
        self._thread.start()
        logger.info(
            "Backup automático cada %.0f min en %s", self._interval / 60, self._backup_dir,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> Optional[Path]:
        """Escribe un backup ahora. None si no hay proyectos que guardar."""
        if not self._repo.list_projects():
            logger.debug("Backup automático omitido: sin proyectos")
            return None

        filename = safe_backup_name(f"ao3_auto_backup_{self._today().isoformat()}.json")
        return self._repo.export_backup(self._backup_dir / filename)

    def _loop(self) -> None:
        # wait() devuelve True en cuanto se pide stop: sale sin esperar al intervalo
        while not self._stop.wait(self._interval):
            try:
                self.run_once()
            except Exception as e:
                logger.error("Backup automático falló: %s", e)
