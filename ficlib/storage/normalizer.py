# storage/normalizer.py
"""
Migración y normalización de proyectos leídos de disco.

Se ejecuta una sola vez al cargar (Repository.load / import_backup),
nunca desperdigada por el resto del código.

Versiones:
  1 — export JSON de la app web (claves camelCase, campos opcionales)
  2 — formato actual (snake_case, todos los campos presentes)
"""
import logging
from typing import Any

from ficlib.chapters import reindex
from ficlib.models import (
    SEPARATOR_MARKER,
    Block,
    BlockType,
    Project,
    ProjectMetadata,
    new_block_id,
    now_ms,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# camelCase (v1) → snake_case (v2)
_LEGACY_BLOCK_KEYS = {
    "isEdited":     "is_edited",
    "isLoading":    "is_loading",
    "isFavorite":   "is_favorite",
    "chapterIndex": "chapter_index",
}

_LEGACY_METADATA_KEYS = {
    "originalLanguage":     "original_language",
    "targetLanguage":       "target_language",
    "customPrompt":         "custom_prompt",
    "refinePromptTemplate": "refine_prompt_template",
    "contextWindow":        "context_window",
    "batchSize":            "batch_size",
    "includeTags":          "include_tags",
    "tagInstruction":       "tag_instruction",
}

_LEGACY_PROJECT_KEYS = {
    "lastModified":    "last_modified",
    "bookmarkBlockId": "bookmark_block_id",
}


def sanitize_project(data: dict[str, Any]) -> Project:
    """
    Convierte un dict crudo (cualquier versión) en un Project válido:
    rellena defaults, fuerza invariantes y reindexa capítulos.
    """
    version = int(data.get("schema_version") or 1)
    if version < SCHEMA_VERSION:
        data = _migrate_v1(data)
        logger.debug("Proyecto %s migrado de v%d a v%d", data.get("id"), version, SCHEMA_VERSION)

    blocks = [_sanitize_block(raw) for raw in data.get("blocks") or []]
    _dedupe_ids(blocks)

    return Project(
        id                = str(data.get("id") or new_block_id()),
        metadata          = _sanitize_metadata(data.get("metadata") or {}),
        blocks            = reindex(blocks),
        last_modified     = int(data.get("last_modified") or now_ms()),
        bookmark_block_id = data.get("bookmark_block_id") or None,
    )


def project_to_dict(project: Project) -> dict[str, Any]:
    """Serialización v2. is_loading es transitorio y no se guarda."""
    meta = project.metadata
    return {
        "schema_version":    SCHEMA_VERSION,
        "id":                project.id,
        "last_modified":     project.last_modified,
        "bookmark_block_id": project.bookmark_block_id,
        "metadata":          metadata_to_dict(meta),
        "blocks": [
            {
                "id":            b.id,
                "original":      b.original,
                "translated":    b.translated,
                "type":          b.type.value,
                "is_edited":     b.is_edited,
                "is_favorite":   b.is_favorite,
                "note":          b.note,
                "chapter_index": b.chapter_index,
            }
            for b in project.blocks
        ],
    }


def metadata_to_dict(meta: ProjectMetadata) -> dict[str, Any]:
    return {
        "title":                  meta.title,
        "author":                 meta.author,
        "fandom":                 meta.fandom,
        "tags":                   list(meta.tags),
        "url":                    meta.url,
        "original_language":      meta.original_language,
        "target_language":        meta.target_language,
        "model":                  meta.model,
        "custom_prompt":          meta.custom_prompt,
        "refine_prompt_template": meta.refine_prompt_template,
        "context_window":         meta.context_window,
        "batch_size":             meta.batch_size,
        "include_tags":           meta.include_tags,
        "tag_instruction":        meta.tag_instruction,
        "glossary":               meta.glossary,
        "date":                   meta.date,
    }


# ------------------------------------------------------------------
# Helpers privados
# ------------------------------------------------------------------

def _migrate_v1(data: dict[str, Any]) -> dict[str, Any]:
    migrated = _rename_keys(data, _LEGACY_PROJECT_KEYS)
    migrated["metadata"] = _rename_keys(data.get("metadata") or {}, _LEGACY_METADATA_KEYS)
    migrated["blocks"] = [
        _rename_keys(b, _LEGACY_BLOCK_KEYS) for b in data.get("blocks") or []
    ]
    migrated["schema_version"] = SCHEMA_VERSION
    return migrated


def _rename_keys(raw: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    return {mapping.get(key, key): value for key, value in raw.items()}


def _sanitize_block(raw: dict[str, Any]) -> Block:
    try:
        block_type = BlockType(raw.get("type") or "text")
    except ValueError:
        logger.warning("Tipo de bloque desconocido %r, se usa 'text'", raw.get("type"))
        block_type = BlockType.TEXT

    translated = raw.get("translated") or ""
    if block_type == BlockType.SEPARATOR:
        translated = SEPARATOR_MARKER

    return Block(
        id            = str(raw.get("id") or new_block_id()),
        original      = raw.get("original") or "",
        translated    = translated,
        type          = block_type,
        is_edited     = bool(raw.get("is_edited", False)),
        is_loading    = False,   # nada queda "en vuelo" tras recargar
        is_favorite   = bool(raw.get("is_favorite", False)),
        note          = raw.get("note") or "",
        chapter_index = int(raw.get("chapter_index") or 0),
    )


def _dedupe_ids(blocks: list[Block]) -> None:
    """Ids repetidos en datos viejos: el segundo recibe uno nuevo."""
    seen: set[str] = set()
    for block in blocks:
        if block.id in seen:
            old_id   = block.id
            block.id = new_block_id()
            logger.warning("Id de bloque duplicado %s reasignado a %s", old_id, block.id)
        seen.add(block.id)


def _sanitize_metadata(raw: dict[str, Any]) -> ProjectMetadata:
    defaults = ProjectMetadata(title="Untitled")
    return ProjectMetadata(
        title                  = raw.get("title") or defaults.title,
        author                 = raw.get("author") or defaults.author,
        fandom                 = raw.get("fandom") or defaults.fandom,
        tags                   = [str(t) for t in raw.get("tags") or []],
        url                    = raw.get("url") or "",
        original_language      = raw.get("original_language") or defaults.original_language,
        target_language        = raw.get("target_language") or defaults.target_language,
        model                  = raw.get("model") or "",
        custom_prompt          = raw.get("custom_prompt") or "",
        refine_prompt_template = raw.get("refine_prompt_template") or "",
        context_window         = _as_int(raw.get("context_window"), defaults.context_window),
        batch_size             = _as_int(raw.get("batch_size"), defaults.batch_size),
        include_tags           = bool(raw.get("include_tags", False)),
        tag_instruction        = raw.get("tag_instruction") or "",
        glossary               = raw.get("glossary") or "",
        date                   = raw.get("date") or defaults.date,
    )


def _as_int(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
