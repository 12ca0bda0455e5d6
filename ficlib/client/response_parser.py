# client/response_parser.py
import json
import logging
import re
from typing import Optional

from ficlib.errors import PermanentServiceError

logger = logging.getLogger(__name__)

# Captura un array JSON dentro de bloques ```json ... ``` o ``` ... ```
_MARKDOWN_JSON_RE = re.compile(
    r"```(?:json)?\s*(\[.*?\])\s*```",
    re.DOTALL,
)

# Captura el primer array JSON que aparezca en el texto
_BARE_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)

_FENCE_OPEN_RE  = re.compile(r"^```(?:json|markdown|text)?\s*\n", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\n```\s*$")


def parse_batch_response(raw_text: str, expected: int, model_name: str) -> list[str]:
    """
    Parsea la respuesta de un lote con degradación progresiva.

    Estrategia:
    1. JSON directo (el camino feliz)
    2. JSON dentro de bloque markdown
    3. Primer array JSON en el texto libre

    A diferencia de un bloque suelto, un lote no se puede recuperar
    tratando el texto como traducción: sin array válido de la longitud
    esperada → PermanentServiceError.
    """
    text = (raw_text or "").strip()
    if not text:
        raise PermanentServiceError(f"{model_name} devolvió una respuesta vacía")

    result = _try_parse(text)

    if result is None:
        match = _MARKDOWN_JSON_RE.search(text)
        if match:
            result = _try_parse(match.group(1))
            if result is not None:
                logger.warning(
                    "%s envolvió la respuesta en markdown — considera reforzar el prompt",
                    model_name,
                )

    if result is None:
        match = _BARE_ARRAY_RE.search(text)
        if match:
            result = _try_parse(match.group(0))
            if result is not None:
                logger.warning("%s devolvió JSON con texto extra alrededor", model_name)

    if result is None:
        raise PermanentServiceError(
            f"{model_name} devolvió una respuesta no parseable: {text[:200]!r}"
        )

    if len(result) != expected:
        raise PermanentServiceError(
            f"{model_name} devolvió {len(result)} traducciones para {expected} bloques"
        )

    return [_as_text(item) for item in result]


def clean_refined_text(raw_text: Optional[str]) -> str:
    """Quita fences de markdown que algunos modelos añaden igual."""
    text = (raw_text or "").strip()
    text = _FENCE_OPEN_RE.sub("", text)
    text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


def _try_parse(text: str) -> Optional[list]:
    try:
        data = json.loads(text)
        if isinstance(data, list):
            return data
    except (json.JSONDecodeError, ValueError):
        pass
    return None


def _as_text(item) -> str:
    if isinstance(item, str):
        return item
    if item is None:
        return ""
    return str(item)
