# ficlib/exporter.py
import html
import logging
import re
from pathlib import Path

from ficlib.models import BlockType, Project

logger = logging.getLogger(__name__)

_OUTPUT_DIR = Path.home() / ".ficlib" / "output"

FORMATS = {
    "markdown": "md",
    "html":     "html",
    "txt":      "txt",
}

_HEADING_PREFIX_RE = re.compile(r"^[#\s]+")


class Exporter:
    """
    Responsabilidad única: tomar un proyecto y escribir el archivo de salida.

    No sabe nada de modelos ni de lógica de traducción.
    Un bloque sin traducción se exporta con su texto original.
    """

    def __init__(self, output_dir: Path | None = None):
        self._output_dir = output_dir or _OUTPUT_DIR

    def build(self, project: Project, fmt: str = "markdown", output_path: Path | None = None) -> Path:
        content = render(project, fmt)

        if output_path is None:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self._output_dir / export_filename(project, fmt)
        else:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

        output_path.write_text(content, encoding="utf-8")
        logger.info("Output escrito en: %s", output_path)
        return output_path


def export_filename(project: Project, fmt: str) -> str:
    meta = project.metadata
    return f"{_slugify(meta.title or 'fanfic')}_{meta.target_language}.{FORMATS[fmt]}"


def render(project: Project, fmt: str) -> str:
    if fmt not in FORMATS:
        raise ValueError(f"Formato de exportación desconocido: '{fmt}'")
    if fmt == "markdown":
        return _render_markdown(project)
    if fmt == "html":
        return _render_html(project)
    return _render_txt(project)


def _render_markdown(project: Project) -> str:
    meta  = project.metadata
    parts = [
        f"# {meta.title}\n**Author:** {meta.author}\n**Source:** {meta.url or 'N/A'}\n---\n"
    ]
    for block in project.blocks:
        text = block.translated or block.original
        if block.type == BlockType.HEADER:
            parts.append(f"## {_clean_heading(text)}\n")
        elif block.type == BlockType.SEPARATOR:
            parts.append("---\n")
        else:
            parts.append(f"{text}\n")
    return "\n".join(parts)


def _render_html(project: Project) -> str:
    body = []
    for block in project.blocks:
        raw = block.translated or block.original
        text = html.escape(raw)
        if block.type == BlockType.HEADER:
            body.append(f"<h2>{html.escape(_clean_heading(raw))}</h2>")
        elif block.type == BlockType.SEPARATOR:
            body.append("<hr/>")
        else:
            body.append(f"<p>{text.replace(chr(10), '<br/>')}</p>")

    title = html.escape(project.metadata.title)
    return f"<html><body><h1>{title}</h1>\n" + "\n".join(body) + "\n</body></html>\n"


def _render_txt(project: Project) -> str:
    parts = [f"{project.metadata.title}\n"]
    for block in project.blocks:
        text = block.translated or block.original
        if block.type == BlockType.HEADER:
            parts.append(f"\n[ {_clean_heading(text)} ]\n")
        else:
            parts.append(f"{text}\n")
    return "\n".join(parts)


def _clean_heading(text: str) -> str:
    return _HEADING_PREFIX_RE.sub("", text)


def _slugify(title: str) -> str:
    """Convierte el título en un nombre de archivo seguro."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s]+", "_", slug)
    return slug or "fanfic"
