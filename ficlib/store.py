# ficlib/store.py
"""
Operaciones del usuario sobre los bloques de un proyecto.

Todo es mutación en memoria; persistir es responsabilidad del caller
(CLI o Scheduler) vía Repository.save().
"""
import logging
import math
from dataclasses import dataclass

from ficlib.chapters import reindex
from ficlib.errors import ProjectNotFoundError
from ficlib.models import (
    SEPARATOR_MARKER,
    Block,
    BlockType,
    Project,
    ProjectMetadata,
    SourceDocument,
    new_block_id,
)

logger = logging.getLogger(__name__)


def percentage(part: int, total: int) -> int:
    """Porcentaje entero; .5 redondea hacia arriba (12.5 → 13), no al par."""
    if total == 0:
        return 0
    return math.floor(100 * part / total + 0.5)


@dataclass(frozen=True)
class Progress:
    translated: int
    total:      int

    @property
    def percent(self) -> int:
        return percentage(self.translated, self.total)


def progress(blocks: list[Block]) -> Progress:
    """Siempre recalculado desde los bloques; nunca contadores sueltos."""
    return Progress(
        translated = sum(1 for b in blocks if b.is_translated),
        total      = len(blocks),
    )


def create_project(
    source:          SourceDocument,
    target_language: str,
    model:           str,
    **settings,
) -> Project:
    """
    Proyecto nuevo a partir de lo que devolvió el Source Provider.
    settings: cualquier campo extra de ProjectMetadata (batch_size, glossary...).
    """
    metadata = ProjectMetadata(
        title           = source.title,
        author          = source.author,
        fandom          = source.fandom,
        tags            = list(source.tags),
        url             = source.url,
        target_language = target_language,
        model           = model,
        **settings,
    )
    return Project(
        id       = new_block_id(),
        metadata = metadata,
        blocks   = reindex(source.blocks),
    )


def _require_block(project: Project, block_id: str) -> Block:
    block = project.find_block(block_id)
    if block is None:
        raise ProjectNotFoundError(
            f"Bloque '{block_id}' no existe en el proyecto {project.id}"
        )
    return block


def edit_translation(project: Project, block_id: str, text: str) -> Block:
    """Traducción escrita a mano: marca is_edited."""
    block = _require_block(project, block_id)
    block.translated = text
    block.is_edited  = True
    block.is_loading = False
    project.touch()
    return block


def toggle_favorite(project: Project, block_id: str) -> Block:
    block = _require_block(project, block_id)
    block.is_favorite = not block.is_favorite
    project.touch()
    return block


def set_note(project: Project, block_id: str, note: str) -> Block:
    block = _require_block(project, block_id)
    block.note = note
    project.touch()
    return block


def set_bookmark(project: Project, block_id: str) -> None:
    _require_block(project, block_id)
    project.bookmark_block_id = block_id
    project.touch()


def toggle_header(project: Project, block_id: str) -> Block:
    """
    Alterna header <-> text. Cambia los límites de capítulo,
    así que se reindexa el proyecto completo.
    """
    block = _require_block(project, block_id)
    if block.type == BlockType.SEPARATOR:
        raise ValueError("Un separador no puede convertirse en header")

    block.type = BlockType.TEXT if block.type == BlockType.HEADER else BlockType.HEADER
    project.blocks = reindex(project.blocks)
    project.touch()
    logger.debug("Bloque %s ahora es %s", block_id, block.type.value)
    return project.find_block(block_id)


def favorites(project: Project) -> list[Block]:
    return [b for b in project.blocks if b.is_favorite]


def fill_with_original(blocks: list[Block]) -> None:
    """Modo 'original': la traducción es el propio texto fuente."""
    for block in blocks:
        if block.type == BlockType.SEPARATOR:
            block.translated = SEPARATOR_MARKER
        elif not block.translated:
            block.translated = block.original
        block.is_loading = False
