# ficlib/scheduler.py
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator, Optional

from ficlib.client.base import TranslationClient
from ficlib.client.models import TranslationOptions
from ficlib.client.prompt_builder import DEFAULT_REFINE_PROMPT, FANDOM_SAMPLE_CHARS
from ficlib.client.retry import call_with_retry
from ficlib.errors import (
    ConfigurationError,
    PermanentServiceError,
    ProjectBusyError,
    ProjectNotFoundError,
)
from ficlib.models import Block, BlockType, Project, is_unknown_fandom
from ficlib.storage.repository import Repository
from ficlib.store import Progress, fill_with_original, progress

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE     = 5
DEFAULT_CONTEXT_WINDOW = 2
MAX_BATCH_SIZE         = 20
MAX_CONTEXT_WINDOW     = 10

ORIGINAL_TARGET = "original"


# ------------------------------------------------------------------
# Configuración de una ejecución
# ------------------------------------------------------------------

@dataclass(frozen=True)
class RunConfig:
    batch_size:     int = DEFAULT_BATCH_SIZE
    context_window: int = DEFAULT_CONTEXT_WINDOW
    max_batch_size: int = MAX_BATCH_SIZE

    @property
    def effective_batch_size(self) -> int:
        return max(1, min(self.batch_size, max(1, self.max_batch_size)))

    @property
    def effective_context_window(self) -> int:
        return max(0, min(self.context_window, MAX_CONTEXT_WINDOW))

    @classmethod
    def for_project(cls, project: Project, max_batch_size: int = MAX_BATCH_SIZE) -> "RunConfig":
        return cls(
            batch_size     = project.metadata.batch_size,
            context_window = project.metadata.context_window,
            max_batch_size = max_batch_size,
        )


# ------------------------------------------------------------------
# Eventos — lo que consume cualquier capa de presentación
# ------------------------------------------------------------------

@dataclass(frozen=True)
class SchedulerEvent:
    """Snapshot inmutable del proyecto en un punto de la ejecución."""
    project_id:   str
    window_index: int
    window_count: int
    blocks:       tuple[Block, ...]
    progress:     Progress
    context:      tuple[str, ...]

    terminal = False


@dataclass(frozen=True)
class Loading(SchedulerEvent):
    pass


@dataclass(frozen=True)
class WindowCompleted(SchedulerEvent):
    pass


@dataclass(frozen=True)
class Completed(SchedulerEvent):
    terminal = True


@dataclass(frozen=True)
class Stopped(SchedulerEvent):
    terminal = True


@dataclass(frozen=True)
class Failed(SchedulerEvent):
    error: Optional[BaseException] = None

    terminal = True


# ------------------------------------------------------------------
# Piezas internas
# ------------------------------------------------------------------

class ContextBuffer:
    """FIFO acotada de originales recientes, para continuidad narrativa."""

    def __init__(self, size: int):
        self._items: deque[str] = deque(maxlen=max(0, size))

    def push(self, original: str) -> None:
        self._items.append(original)

    def extend(self, originals: Iterable[str]) -> None:
        for original in originals:
            self.push(original)

    def bootstrap(self, blocks: list[Block]) -> None:
        """Reanudación: lo ya traducido vuelve a alimentar el contexto."""
        self.extend(b.original for b in blocks if b.is_translated)

    def joined(self) -> str:
        return "\n".join(self._items)

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)


def window_spans(total: int, batch_size: int) -> list[range]:
    """Ventanas contiguas y disjuntas; la última puede ser más corta."""
    size = max(1, batch_size)
    return [range(start, min(start + size, total)) for start in range(0, total, size)]


class ProjectLocks:
    """Un lock por proyecto: una sola ejecución a la vez sobre el mismo id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def acquire(self, project_id: str) -> None:
        with self._guard:
            lock = self._locks.setdefault(project_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise ProjectBusyError(f"El proyecto {project_id} ya se está procesando")

    def release(self, project_id: str) -> None:
        with self._guard:
            lock = self._locks.get(project_id)
        if lock is not None and lock.locked():
            lock.release()

    def is_locked(self, project_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(project_id)
        return lock is not None and lock.locked()


# ------------------------------------------------------------------
# Scheduler
# ------------------------------------------------------------------

class BatchScheduler:
    """
    Recorre los bloques de un proyecto en ventanas y los traduce
    con el cliente, estrictamente en orden.

    Responsabilidades:
    - Mantener el buffer de contexto entre ventanas
    - Saltar lo ya traducido (reanudación idempotente)
    - Reintentar errores transitorios vía la política de reintentos
    - Persistir el proyecto al final de cada ventana
    - Emitir snapshots inmutables en cada paso
    """

    def __init__(
        self,
        client:         TranslationClient,
        repo:           Repository,
        locks:          Optional[ProjectLocks] = None,
        max_batch_size: int = MAX_BATCH_SIZE,
        max_retries:    int = 3,
        base_delay_ms:  int = 2000,
        sleep:          Callable[[float], None] = time.sleep,
    ):
        self._client         = client
        self._repo           = repo
        self._locks          = locks or ProjectLocks()
        self._max_batch_size = max_batch_size
        self._max_retries    = max_retries
        self._base_delay_ms  = base_delay_ms
        self._sleep          = sleep

    def run(
        self,
        project:    Project,
        config:     Optional[RunConfig] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> Iterator[SchedulerEvent]:
        """
        Generador de snapshots. Termina siempre en Completed, Stopped o Failed.
        Idempotente: sobre un proyecto ya traducido no hace ninguna llamada.

        El lock del proyecto se toma al consumir el primer evento y se
        libera al agotar (o cerrar) el generador.
        """
        config = config or RunConfig.for_project(project, self._max_batch_size)

        self._locks.acquire(project.id)
        try:
            yield from self._run_locked(project, config, stop_event)
        finally:
            # Cerrado a mitad de ventana (close() o Ctrl-C): nada queda en vuelo
            for block in project.blocks:
                block.is_loading = False
            self._locks.release(project.id)

    def run_to_end(
        self,
        project:    Project,
        config:     Optional[RunConfig] = None,
        stop_event: Optional[threading.Event] = None,
        on_event:   Optional[Callable[[SchedulerEvent], None]] = None,
    ) -> SchedulerEvent:
        """Consume run() completo y devuelve el evento terminal."""
        last: Optional[SchedulerEvent] = None
        for event in self.run(project, config, stop_event):
            if on_event is not None:
                on_event(event)
            last = event
        return last

    def refine_block(self, project: Project, block_id: str, instruction: str) -> Block:
        """
        Ida y vuelta Translated → Loading → Translated de un solo bloque.
        Fail-soft: si el cliente falla devuelve la traducción previa
        y el bloque queda como estaba.
        """
        block = project.find_block(block_id)
        if block is None:
            raise ProjectNotFoundError(f"Bloque '{block_id}' no existe en el proyecto {project.id}")
        if block.type == BlockType.SEPARATOR:
            raise ValueError("Los separadores no se refinan")

        self._check_configuration(project)
        meta = project.metadata

        self._locks.acquire(project.id)
        try:
            previous = block.translated
            block.is_loading = True
            try:
                text = self._client.refine(
                    original            = block.original,
                    current_translation = previous,
                    target_lang         = meta.target_language,
                    fandom              = meta.fandom,
                    model               = meta.model,
                    instruction         = instruction,
                    template            = meta.refine_prompt_template or DEFAULT_REFINE_PROMPT,
                )
            finally:
                block.is_loading = False

            if text and text != previous:
                block.translated = text
                block.is_edited  = True
                project.touch()
                self._repo.save(project)
                logger.info("Bloque %s refinado", block_id)
            else:
                logger.info("Refinado de %s sin cambios", block_id)
            return block
        finally:
            self._locks.release(project.id)

    def identify_fandom(self, project: Project) -> str:
        """Solo pregunta al modelo si el fandom actual es desconocido."""
        meta = project.metadata
        if not is_unknown_fandom(meta.fandom):
            return meta.fandom

        self._check_configuration(project)
        sample = _sample_text(project.blocks)
        if not sample:
            return meta.fandom

        fandom = self._client.identify_fandom(sample, meta.model)
        if fandom:
            meta.fandom = fandom
            project.touch()
            self._repo.save(project)
        return meta.fandom

    def generate_glossary(self, project: Project) -> str:
        """Un glosario vacío (fallo) nunca pisa el existente."""
        self._check_configuration(project)
        meta = project.metadata
        glossary = self._client.generate_glossary(meta.fandom, meta.target_language, meta.model)
        if glossary:
            meta.glossary = glossary
            project.touch()
            self._repo.save(project)
        else:
            logger.warning("No se pudo generar glosario para '%s'", meta.fandom)
        return meta.glossary

    # ------------------------------------------------------------------
    # Pasos internos
    # ------------------------------------------------------------------

    def _run_locked(
        self,
        project:    Project,
        config:     RunConfig,
        stop_event: Optional[threading.Event],
    ) -> Iterator[SchedulerEvent]:
        blocks = project.blocks
        meta   = project.metadata
        buffer = ContextBuffer(config.effective_context_window)

        if meta.target_language == ORIGINAL_TARGET:
            fill_with_original(blocks)
            project.touch()
            self._repo.save(project)
            yield self._event(Completed, project, 0, 0, buffer)
            return

        self._check_configuration(project)

        buffer.bootstrap(blocks)
        spans = window_spans(len(blocks), config.effective_batch_size)
        total = len(spans)

        logger.info(
            "Proyecto %s: %d bloques en %d ventanas (batch=%d, contexto=%d)",
            project.id, len(blocks), total,
            config.effective_batch_size, config.effective_context_window,
        )

        for index, span in enumerate(spans):
            if stop_event is not None and stop_event.is_set():
                logger.info("Detenido antes de la ventana %d/%d", index + 1, total)
                yield self._event(Stopped, project, index, total, buffer)
                return

            window  = blocks[span.start:span.stop]
            pending = [b for b in window if b.needs_translation]

            if not pending:
                buffer.extend(b.original for b in window if b.is_translated)
                continue

            for block in pending:
                block.is_loading = True
            yield self._event(Loading, project, index, total, buffer)

            try:
                results = self._translate_window(project, pending, buffer)
            except Exception as e:
                # Rollback solo de esta ventana; lo anterior ya está guardado
                for block in pending:
                    block.is_loading = False
                project.touch()
                self._repo.save(project)

                if isinstance(e, ConfigurationError):
                    raise

                logger.error(
                    "Ventana %d/%d falló, ejecución abortada: %s", index + 1, total, e,
                )
                yield self._event(Failed, project, index, total, buffer, error=e)
                return

            for block, text in zip(pending, results):
                block.translated = text
                block.is_loading = False
            buffer.extend(b.original for b in window)

            project.touch()
            self._repo.save(project)

            event = self._event(WindowCompleted, project, index, total, buffer)
            logger.info(
                "Ventana %d/%d traducida (%d bloques) — %d%%",
                index + 1, total, len(pending), event.progress.percent,
            )
            yield event

        yield self._event(Completed, project, total, total, buffer)

    def _translate_window(
        self,
        project: Project,
        pending: list[Block],
        buffer:  ContextBuffer,
    ) -> list[str]:
        meta    = project.metadata
        texts   = [b.original for b in pending]
        options = TranslationOptions(
            model            = meta.model,
            custom_prompt    = meta.custom_prompt,
            previous_context = buffer.joined(),
            tags             = list(meta.tags) if meta.include_tags else [],
            tag_instruction  = meta.tag_instruction,
            glossary         = meta.glossary,
        )

        results = call_with_retry(
            lambda: self._client.translate_batch(
                texts, meta.target_language, meta.fandom, options,
            ),
            max_retries   = self._max_retries,
            base_delay_ms = self._base_delay_ms,
            sleep         = self._sleep,
        )

        if not isinstance(results, list) or len(results) != len(texts):
            received = len(results) if isinstance(results, list) else type(results).__name__
            raise PermanentServiceError(
                f"El cliente devolvió {received} traducciones para {len(texts)} bloques"
            )
        return results

    def _check_configuration(self, project: Project) -> None:
        if not project.metadata.model:
            raise ConfigurationError(f"El proyecto {project.id} no tiene modelo configurado")
        if not self._client.is_configured():
            raise ConfigurationError(
                f"El cliente '{self._client.name}' no tiene api_key configurada"
            )

    @staticmethod
    def _event(
        kind:         type,
        project:      Project,
        window_index: int,
        window_count: int,
        buffer:       ContextBuffer,
        **extra,
    ) -> SchedulerEvent:
        return kind(
            project_id   = project.id,
            window_index = window_index,
            window_count = window_count,
            blocks       = tuple(replace(b) for b in project.blocks),
            progress     = progress(project.blocks),
            context      = buffer.snapshot(),
            **extra,
        )


def _sample_text(blocks: list[Block]) -> str:
    parts: list[str] = []
    size = 0
    for block in blocks:
        if block.type != BlockType.TEXT:
            continue
        parts.append(block.original)
        size += len(block.original)
        if size >= FANDOM_SAMPLE_CHARS:
            break
    return "\n".join(parts)[:FANDOM_SAMPLE_CHARS]
