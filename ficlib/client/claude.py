# client/claude.py
import logging

import anthropic

from ficlib.client.base import TranslationClient
from ficlib.client.models import ClientConfig, TranslationOptions
from ficlib.client.prompt_builder import (
    REFINE_SYSTEM,
    build_batch_prompt,
    build_fandom_prompt,
    build_glossary_prompt,
    build_refine_prompt,
)
from ficlib.client.response_parser import clean_refined_text, parse_batch_response
from ficlib.errors import PermanentServiceError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"

_MAX_TOKENS = 8192

_BATCH_SYSTEM = (
    "Respond with a single JSON array of strings and nothing else. "
    "No markdown, no commentary."
)


class ClaudeClient(TranslationClient):

    def __init__(self, config: ClientConfig):
        self._config = config
        self._client = anthropic.Anthropic(
            api_key = config.api_key,
            timeout = config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return self._config.name   # "claude"

    def is_configured(self) -> bool:
        return bool(self._config.api_key)

    def translate_batch(
        self,
        texts:       list[str],
        target_lang: str,
        fandom:      str,
        options:     TranslationOptions,
    ) -> list[str]:
        prompt = build_batch_prompt(texts, target_lang, fandom, options)

        try:
            raw_text = self._complete(
                model       = options.model or DEFAULT_MODEL,
                system      = _BATCH_SYSTEM,
                prompt      = prompt,
                temperature = self._config.temperature,
            )
        except anthropic.BadRequestError as e:
            # El lote en sí tiene problemas (ej: contenido bloqueado)
            # No es un error de disponibilidad — es un error de contenido
            logger.error("Claude BadRequest en lote: %s", e)
            raise PermanentServiceError(f"Claude rechazó el lote: {e}") from e

        return parse_batch_response(raw_text, len(texts), self.name)

    def refine(
        self,
        original:            str,
        current_translation: str,
        target_lang:         str,
        fandom:              str,
        model:               str,
        instruction:         str,
        template:            str,
    ) -> str:
        prompt = build_refine_prompt(
            template, original, current_translation, target_lang, fandom, instruction,
        )
        try:
            text = clean_refined_text(self._complete(
                model       = model or DEFAULT_MODEL,
                system      = REFINE_SYSTEM,
                prompt      = prompt,
                temperature = 0.3,
            ))
        except Exception as e:
            logger.warning("Refinado con Claude falló, se conserva la traducción: %s", e)
            return current_translation

        return text or current_translation

    def identify_fandom(self, sample_text: str, model: str) -> str:
        try:
            text = self._complete(
                model  = model or DEFAULT_MODEL,
                system = "",
                prompt = build_fandom_prompt(sample_text),
            )
            return text.strip() or "Unknown"
        except Exception as e:
            logger.error("Error identificando fandom: %s", e)
            return "General"

    def generate_glossary(self, fandom: str, target_lang: str, model: str) -> str:
        try:
            return self._complete(
                model  = model or DEFAULT_MODEL,
                system = "",
                prompt = build_glossary_prompt(fandom, target_lang),
            ).strip()
        except Exception as e:
            logger.error("Error generando glosario: %s", e)
            return ""

    def _complete(
        self,
        model:       str,
        system:      str,
        prompt:      str,
        temperature: float | None = None,
    ) -> str:
        kwargs = {
            "model":      model,
            "max_tokens": _MAX_TOKENS,
            "messages":   [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = self._client.messages.create(**kwargs)
        return "".join(
            block.text for block in response.content
            if getattr(block, "type", "text") == "text"
        )
