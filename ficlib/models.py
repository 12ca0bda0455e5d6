# ficlib/models.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


SEPARATOR_MARKER = "---"

# Fandoms que no cuentan como dato real (se pueden detectar o sobrescribir)
UNKNOWN_FANDOMS = frozenset({"", "unknown", "unknown fandom", "general"})


class BlockType(Enum):
    TEXT      = "text"
    HEADER    = "header"
    SEPARATOR = "separator"


def new_block_id() -> str:
    """Id opaco. Nunca se reutiliza: uuid4 es suficiente dentro de un proyecto."""
    return uuid.uuid4().hex[:12]


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def is_unknown_fandom(fandom: Optional[str]) -> bool:
    return (fandom or "").strip().lower() in UNKNOWN_FANDOMS


@dataclass
class Block:
    """Unidad atómica de traducción."""
    id:            str
    original:      str
    translated:    str       = ""
    type:          BlockType = BlockType.TEXT
    is_edited:     bool      = False
    is_loading:    bool      = False
    is_favorite:   bool      = False
    note:          str       = ""
    chapter_index: int       = 0

    @classmethod
    def create(cls, original: str, type: BlockType = BlockType.TEXT) -> "Block":
        """Bloque recién parseado. Los separadores nacen con el marcador fijo."""
        translated = SEPARATOR_MARKER if type == BlockType.SEPARATOR else ""
        return cls(id=new_block_id(), original=original, translated=translated, type=type)

    @property
    def is_translated(self) -> bool:
        return bool(self.translated)

    @property
    def needs_translation(self) -> bool:
        """Pendiente = no es separador y todavía no tiene traducción."""
        return self.type != BlockType.SEPARATOR and not self.translated


@dataclass
class ProjectMetadata:
    title:                  str
    author:                 str           = "Unknown"
    fandom:                 str           = "Unknown"
    tags:                   list[str]     = field(default_factory=list)
    url:                    str           = ""
    original_language:      str           = "auto"
    target_language:        str           = "es"
    model:                  str           = ""
    custom_prompt:          str           = ""
    refine_prompt_template: str           = ""
    context_window:         int           = 2
    batch_size:             int           = 5
    include_tags:           bool          = False
    tag_instruction:        str           = ""
    glossary:               str           = ""
    date:                   str           = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


@dataclass
class Project:
    id:               str
    metadata:         ProjectMetadata
    blocks:           list[Block]    = field(default_factory=list)
    last_modified:    int            = field(default_factory=now_ms)
    # Referencia débil: solo lookup, no garantiza que el bloque exista
    bookmark_block_id: Optional[str] = None

    def find_block(self, block_id: Optional[str]) -> Optional[Block]:
        if not block_id:
            return None
        return next((b for b in self.blocks if b.id == block_id), None)

    @property
    def bookmark(self) -> Optional[Block]:
        return self.find_block(self.bookmark_block_id)

    def touch(self) -> None:
        self.last_modified = now_ms()


@dataclass
class SourceDocument:
    """Lo que devuelve cualquier Source Provider: bloques ya clasificados + metadata."""
    title:  str
    blocks: list[Block]
    author: str       = "Unknown"
    fandom: str       = "Unknown"
    tags:   list[str] = field(default_factory=list)
    url:    str       = ""
