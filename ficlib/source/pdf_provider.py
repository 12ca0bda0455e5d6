# ficlib/source/pdf_provider.py
import os
import re

from ficlib.chapters import reindex
from ficlib.models import Block, SourceDocument
from ficlib.source.base import SourceProvider
from ficlib.source.text_provider import classify

# Números de página sueltos ("12", "- 12 -", "Page 12")
_PAGE_NUMBER_RE = re.compile(r'^\s*(page\s+)?[-–\s]*\d+[-–\s]*$', re.IGNORECASE)

_LINE_BREAK_RE = re.compile(r'\s*\n\s*')

# get_text("blocks") → (x0, y0, x1, y1, text, block_no, block_type); 0 = texto
_TEXT_BLOCK = 0


class PdfSourceProvider(SourceProvider):
    """
    Source Provider para .pdf (las descargas PDF de AO3, por ejemplo).

    Usa los bloques de texto que PyMuPDF ya separa por posición en la
    página: cada bloque es un párrafo. Los saltos de línea internos son
    del maquetado, no del autor, y se unen con un espacio.

    Requiere: pip install pymupdf
    """

    def can_handle(self, file_path: str) -> bool:
        return file_path.lower().endswith(".pdf")

    def parse(self, file_path: str) -> SourceDocument:
        try:
            import fitz  # pymupdf
        except ImportError:
            raise ImportError(
                "El soporte PDF requiere pymupdf. Instálalo con: pip install pymupdf"
            )

        doc = fitz.open(file_path)
        try:
            paragraphs = [
                text
                for page in doc
                for text in self._page_paragraphs(page)
            ]
        finally:
            doc.close()

        blocks = [Block.create(p, classify(p)) for p in paragraphs]
        return SourceDocument(
            title  = self._extract_title(paragraphs, file_path),
            blocks = reindex(blocks),
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _page_paragraphs(self, page) -> list[str]:
        paragraphs = []
        for entry in page.get_text("blocks"):
            if entry[6] != _TEXT_BLOCK:
                continue
            text = _LINE_BREAK_RE.sub(" ", entry[4]).strip()
            if text and not _PAGE_NUMBER_RE.match(text):
                paragraphs.append(text)
        return paragraphs

    def _extract_title(self, paragraphs: list[str], file_path: str) -> str:
        """Primer párrafo si parece un título, o el nombre del archivo."""
        if paragraphs:
            first = paragraphs[0]
            words = first.split()
            if words and len(words) <= 12 and not first.endswith("."):
                return first
        return os.path.splitext(os.path.basename(file_path))[0]
