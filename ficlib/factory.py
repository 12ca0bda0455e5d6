# ficlib/factory.py
from pathlib import Path
from typing import Optional

from ficlib.client.base import TranslationClient
from ficlib.client.claude import ClaudeClient
from ficlib.client.gemini import GeminiClient
from ficlib.client.models import ClientConfig
from ficlib.config import Settings
from ficlib.errors import ConfigurationError
from ficlib.scheduler import BatchScheduler, ProjectLocks
from ficlib.storage.autosave import AutoBackup
from ficlib.storage.repository import Repository


def build_repository(settings: Settings) -> Repository:
    return Repository(db_path=settings.db_path)


def build_client(model: str, settings: Settings) -> TranslationClient:
    """
    Elige el cliente por prefijo del modelo: claude-* → Anthropic,
    cualquier otro → Gemini.
    Sin api_key del proveedor elegido → ConfigurationError.
    """
    if not model:
        raise ConfigurationError("No hay modelo configurado (--model o default_model)")

    if model.startswith("claude"):
        name, api_key, client_class = "claude", settings.anthropic_api_key, ClaudeClient
    else:
        name, api_key, client_class = "gemini", settings.gemini_api_key, GeminiClient

    if not api_key:
        raise ConfigurationError(
            f"{name}: sin api_key. "
            f"Revisa ~/.ficlib/config.yaml y tus variables de entorno."
        )

    return client_class(ClientConfig(
        name            = name,
        api_key         = api_key,
        timeout_seconds = settings.timeout_seconds,
        temperature     = settings.temperature,
    ))


def build_scheduler(
    model:    str,
    settings: Settings,
    repo:     Repository,
    locks:    Optional[ProjectLocks] = None,
) -> BatchScheduler:
    """
    Ensambla el Scheduler con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.
    """
    return BatchScheduler(
        client         = build_client(model, settings),
        repo           = repo,
        locks          = locks,
        max_batch_size = settings.max_batch_size,
        max_retries    = settings.max_retries,
        base_delay_ms  = settings.base_delay_ms,
    )


def build_auto_backup(settings: Settings, repo: Repository) -> Optional[AutoBackup]:
    if not settings.auto_backup:
        return None
    return AutoBackup(
        repo             = repo,
        backup_dir       = Path(settings.backup_dir) if settings.backup_dir else None,
        interval_minutes = settings.backup_interval_minutes,
    )
