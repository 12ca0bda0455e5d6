# ficlib/config.py
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from ficlib.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path.home() / ".ficlib" / "config.yaml"


@dataclass
class Settings:
    """
    Configuración global. Se carga desde ~/.ficlib/config.yaml;
    si no existe, todo queda en defaults + variables de entorno.
    """
    gemini_api_key:          Optional[str] = None
    anthropic_api_key:       Optional[str] = None
    default_model:           str           = "gemini-2.0-flash"
    target_lang:             str           = "es"
    batch_size:              int           = 5
    max_batch_size:          int           = 20
    context_window:          int           = 2
    max_retries:             int           = 3
    base_delay_ms:           int           = 2000
    similarity_threshold:    int           = 20
    timeout_seconds:         int           = 120
    temperature:             float         = 0.3
    db_path:                 Optional[str] = None
    backup_dir:              Optional[str] = None
    backup_interval_minutes: float         = 30
    auto_backup:             bool          = False


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Carga la configuración desde YAML.
    Resuelve variables de entorno en los valores (${VAR}).
    Las api_key ausentes se buscan en el entorno.
    """
    path = Path(config_path or os.environ.get("FICLIB_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)

    raw: dict = {}
    if path.exists():
        with path.open(encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(f"Config inválida en {path}: se esperaba un mapa YAML")
        raw = loaded or {}
    elif config_path:
        # Ruta explícita que no existe: error del usuario, no defaults silenciosos
        raise ConfigurationError(f"Config no encontrada en {path}")
    else:
        logger.debug("Sin config en %s, usando defaults", path)

    known = {f.name for f in fields(Settings)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Claves de config desconocidas ignoradas: %s", ", ".join(sorted(unknown)))

    settings = Settings(**{
        key: _resolve_env(value) for key, value in raw.items() if key in known
    })

    settings.gemini_api_key = (
        settings.gemini_api_key
        or os.environ.get("GEMINI_API_KEY")
        or os.environ.get("API_KEY")
    )
    settings.anthropic_api_key = settings.anthropic_api_key or os.environ.get("ANTHROPIC_API_KEY")
    settings.db_path = settings.db_path or os.environ.get("FICLIB_DB_PATH")
    return settings


def _resolve_env(value):
    """Expande ${VAR_NAME} desde el entorno."""
    if not isinstance(value, str) or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
