# source/text_provider.py
import os
import re

from ficlib.chapters import reindex
from ficlib.models import Block, BlockType, SourceDocument
from ficlib.source.base import SourceProvider

# Cabeceras: markdown explícito
_MARKDOWN_HEADER_RE = re.compile(r'^#+\s')

# Marcador de capítulo en texto plano: una sola línea corta, con título opcional
_CHAPTER_MARKER_RE = re.compile(
    r'^\s*(chapter|capítulo|capitulo|chapitre|kapitel)\s+[\divxlc]+\s*([:.\-–—]\s*.{0,80})?$',
    re.IGNORECASE,
)

# Separadores de escena: ***, ---, * * *, ———, ·····
_SEPARATOR_PATTERNS: list[re.Pattern] = [
    re.compile(r'^\s*[*\-—_]{3,}\s*$'),
    re.compile(r'^\s*[*\-—]\s*[*\-—]\s*[*\-—]\s*$'),
    re.compile(r'^\s*·{3,}\s*$'),
]

_PARAGRAPH_SPLIT_RE = re.compile(r'\n\s*\n')

_SUPPORTED_EXTENSIONS = {'.txt', '.md'}


class TextSourceProvider(SourceProvider):
    """
    Source Provider para .txt y .md.

    Cada párrafo (bloques separados por línea en blanco) es un Block.
    Se clasifica como header si es markdown (# ...) o un marcador de
    capítulo; como separator si es un corte de escena.

    El título se extrae, en orden de prioridad:
      - Primera línea si parece un título (≤10 palabras, sin punto final)
      - Nombre del archivo sin extensión
    """

    def can_handle(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def parse(self, file_path: str) -> SourceDocument:
        raw = self._read_file(file_path)
        return SourceDocument(
            title  = self._extract_title(raw, file_path),
            blocks = split_text_into_blocks(raw),
        )

    # ------------------------------------------------------------------ #
    #  Helpers privados                                                    #
    # ------------------------------------------------------------------ #

    def _read_file(self, file_path: str) -> str:
        """Lee el archivo intentando UTF-8 primero, latin-1 como fallback."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError:
            with open(file_path, 'r', encoding='latin-1') as f:
                return f.read()

    def _extract_title(self, text: str, file_path: str) -> str:
        first_line = text.strip().split('\n')[0].strip().lstrip('#').strip()
        words = first_line.split()
        if words and len(words) <= 10 and not first_line.endswith('.'):
            return first_line
        return os.path.splitext(os.path.basename(file_path))[0]


def split_text_into_blocks(text: str) -> list[Block]:
    normalized = text.replace('\r\n', '\n')
    chunks = [c.strip() for c in _PARAGRAPH_SPLIT_RE.split(normalized)]

    blocks = [Block.create(chunk, classify(chunk)) for chunk in chunks if chunk]
    return reindex(blocks)


def classify(chunk: str) -> BlockType:
    if any(p.match(chunk) for p in _SEPARATOR_PATTERNS):
        return BlockType.SEPARATOR
    if _MARKDOWN_HEADER_RE.match(chunk):
        return BlockType.HEADER
    # "Chapter 3 was..." o "Chapter 1\nprosa" siguen siendo texto
    if "\n" not in chunk and _CHAPTER_MARKER_RE.match(chunk):
        return BlockType.HEADER
    return BlockType.TEXT
