# client/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class TranslationOptions:
    """Configuración de una llamada translate_batch."""
    model:            str
    custom_prompt:    str       = ""
    previous_context: str       = ""
    tags:             list[str] = field(default_factory=list)
    tag_instruction:  str       = ""
    glossary:         str       = ""


@dataclass
class ClientConfig:
    """
    Configuración de un proveedor.
    Se carga desde ~/.ficlib/config.yaml (ver ficlib.config).
    """
    name:            str
    api_key:         Optional[str] = None
    timeout_seconds: int           = 120
    temperature:     float         = 0.3
