# ficlib/reconciliation.py
import logging
import re
from dataclasses import dataclass, replace

from ficlib.chapters import reindex
from ficlib.models import Block, BlockType, Project, SourceDocument, is_unknown_fandom
from ficlib.store import percentage

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 20

_WHITESPACE_RE = re.compile(r"\s+")


def fingerprint(text: str) -> str:
    """
    Clave de identidad entre versiones del documento.
    Solo sirve para buscar: no confiere propiedad sobre el bloque.
    """
    return _WHITESPACE_RE.sub(" ", (text or "").strip().lower())


def similarity(old_blocks: list[Block], new_blocks: list[Block]) -> int:
    """
    Porcentaje de bloques de texto viejos cuya huella sigue presente
    en la versión nueva. 0 si la versión vieja no tiene bloques de texto.
    """
    old_text = [b for b in old_blocks if b.type == BlockType.TEXT]
    if not old_text:
        return 0

    new_keys = {fingerprint(b.original) for b in new_blocks if b.type == BlockType.TEXT}
    preserved = sum(1 for b in old_text if fingerprint(b.original) in new_keys)

    return percentage(preserved, len(old_text))


def _carries_user_state(block: Block) -> bool:
    # Los headers se conservan siempre: su título traducido importa
    return bool(
        block.translated
        or block.is_favorite
        or block.note
        or block.type == BlockType.HEADER
    )


def merge(old_blocks: list[Block], new_blocks: list[Block]) -> list[Block]:
    """
    Funde la versión nueva con la persistida.

    El orden y los ids son siempre los de new_blocks; de la versión vieja
    solo se copia el estado del usuario (traducción, edición, favorito,
    nota y tipo). Inserciones, borrados y reordenamientos se toleran
    porque el match es por contenido, no por posición.
    """
    # Textos repetidos ("...", "* * *") se consumen en orden; el último
    # candidato se reutiliza para las apariciones que sobren.
    history: dict[str, list[Block]] = {}
    for block in old_blocks:
        if _carries_user_state(block):
            history.setdefault(fingerprint(block.original), []).append(block)

    merged: list[Block] = []
    matched = 0

    for new_block in new_blocks:
        match = _take(history, fingerprint(new_block.original))
        if match is None:
            merged.append(replace(new_block))
            continue

        matched += 1
        merged.append(replace(
            new_block,
            translated  = match.translated,
            is_edited   = match.is_edited,
            is_favorite = match.is_favorite,
            note        = match.note,
            type        = match.type,
        ))

    logger.debug(
        "Merge: %d/%d bloques nuevos recuperaron estado previo",
        matched, len(new_blocks),
    )
    return merged


def _take(history: dict[str, list[Block]], key: str) -> Block | None:
    candidates = history.get(key)
    if not candidates:
        return None
    if len(candidates) > 1:
        return candidates.pop(0)
    return candidates[0]


@dataclass(frozen=True)
class RefreshPreview:
    similarity:         int
    threshold:          int

    @property
    def needs_confirmation(self) -> bool:
        """Advertencia, no rechazo: el caller decide si aplica el merge."""
        return self.similarity < self.threshold


def preview_refresh(
    old_blocks: list[Block],
    new_blocks: list[Block],
    threshold:  int = DEFAULT_SIMILARITY_THRESHOLD,
) -> RefreshPreview:
    return RefreshPreview(
        similarity = similarity(old_blocks, new_blocks),
        threshold  = threshold,
    )


def apply_refresh(project: Project, source: SourceDocument) -> Project:
    """
    Absorbe una versión actualizada del documento en el proyecto.
    Merge + reindex + metadata; el caller persiste el resultado.
    """
    project.blocks = reindex(merge(project.blocks, source.blocks))

    meta = project.metadata
    meta.title  = source.title or meta.title
    meta.author = source.author or meta.author
    if not is_unknown_fandom(source.fandom):
        meta.fandom = source.fandom
    if source.tags:
        meta.tags = list(source.tags)
    meta.url = source.url or meta.url

    project.touch()
    logger.info(
        "Proyecto %s actualizado desde la fuente: %d bloques",
        project.id, len(project.blocks),
    )
    return project
