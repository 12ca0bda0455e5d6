# client/retry.py
import logging
import random
import time
from typing import Callable, Optional, TypeVar

from ficlib.errors import (
    ConfigurationError,
    PermanentServiceError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

# Fragmentos de mensaje que delatan rate limit, quota, sobrecarga,
# timeout o fallo de transporte. Se comparan en minúsculas.
_RETRYABLE_HINTS = (
    "rate limit",
    "rate-limit",
    "ratelimit",
    "too many requests",
    "quota",
    "resource exhausted",
    "resource_exhausted",
    "overloaded",
    "unavailable",
    "timeout",
    "timed out",
    "deadline",
    "connection",
    "network",
    "fetch failed",
)

_MAX_JITTER_MS = 500


def status_code_of(error: BaseException) -> Optional[int]:
    """
    Código HTTP del error si el SDK lo expone.
    anthropic usa status_code; google.api_core usa code.
    """
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, (PermanentServiceError, ConfigurationError)):
        return False
    if isinstance(error, TransientServiceError):
        return True

    status = status_code_of(error)
    if status in RETRYABLE_STATUS:
        return True

    message = str(error).lower()
    return any(hint in message for hint in _RETRYABLE_HINTS)


def backoff_delay_ms(
    attempt:       int,
    base_delay_ms: int = 2000,
    jitter:        Callable[[float, float], float] = random.uniform,
) -> float:
    """Espera para el intento `attempt` (base 0): base * 2^attempt + jitter."""
    return base_delay_ms * (2 ** attempt) + jitter(0, _MAX_JITTER_MS)


def call_with_retry(
    fn:            Callable[[], T],
    max_retries:   int = 3,
    base_delay_ms: int = 2000,
    sleep:         Callable[[float], None] = time.sleep,
    jitter:        Callable[[float, float], float] = random.uniform,
) -> T:
    """
    Ejecuta fn reintentando solo errores transitorios.

    max_retries es el número total de intentos: tras max_retries fallos
    retryables se relanza el error original. Un error permanente se
    relanza en el primer intento, sin esperar.
    """
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e):
                raise

            if attempt == attempts - 1:
                logger.error(
                    "Reintentos agotados (%d/%d): %s", attempt + 1, attempts, e,
                )
                raise

            delay_ms = backoff_delay_ms(attempt, base_delay_ms, jitter)
            logger.warning(
                "Error retryable (intento %d/%d): %s. Reintentando en %.1fs",
                attempt + 1, attempts, e, delay_ms / 1000,
            )
            sleep(delay_ms / 1000)

    # Inalcanzable: el bucle siempre retorna o relanza
    raise RuntimeError("call_with_retry terminó sin resultado")
