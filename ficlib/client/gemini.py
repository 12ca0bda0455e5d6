# client/gemini.py
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

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

DEFAULT_MODEL = "gemini-2.0-flash"

# Errores de contenido: el mismo lote fallaría igual al reintentar
_CONTENT_ERRORS = (
    google_exceptions.InvalidArgument,
    google_exceptions.PermissionDenied,
)


class GeminiClient(TranslationClient):

    def __init__(self, config: ClientConfig):
        self._config = config
        if config.api_key:
            genai.configure(api_key=config.api_key)

    @property
    def name(self) -> str:
        return self._config.name   # "gemini"

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
        model  = genai.GenerativeModel(
            model_name        = options.model or DEFAULT_MODEL,
            generation_config = genai.GenerationConfig(
                temperature        = self._config.temperature,
                response_mime_type = "application/json",   # Gemini soporta forzar JSON nativo
            ),
        )

        try:
            response = model.generate_content(
                prompt,
                request_options={"timeout": self._config.timeout_seconds},
            )
        except _CONTENT_ERRORS as e:
            logger.error("Gemini rechazó el lote: %s", e)
            raise PermanentServiceError(f"Gemini rechazó el lote: {e}") from e

        return parse_batch_response(_response_text(response), len(texts), self.name)

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
            generative = genai.GenerativeModel(
                model_name         = model or DEFAULT_MODEL,
                system_instruction = REFINE_SYSTEM,
                generation_config  = genai.GenerationConfig(temperature=0.3),
            )
            response = generative.generate_content(
                prompt,
                request_options={"timeout": self._config.timeout_seconds},
            )
            text = clean_refined_text(_response_text(response))
        except Exception as e:
            # Fail-soft: el lector conserva la traducción actual
            logger.warning("Refinado con Gemini falló, se conserva la traducción: %s", e)
            return current_translation

        return text or current_translation

    def identify_fandom(self, sample_text: str, model: str) -> str:
        try:
            generative = genai.GenerativeModel(model_name=model or DEFAULT_MODEL)
            response   = generative.generate_content(build_fandom_prompt(sample_text))
            return _response_text(response).strip() or "Unknown"
        except Exception as e:
            logger.error("Error identificando fandom: %s", e)
            return "General"

    def generate_glossary(self, fandom: str, target_lang: str, model: str) -> str:
        try:
            generative = genai.GenerativeModel(model_name=model or DEFAULT_MODEL)
            response   = generative.generate_content(
                build_glossary_prompt(fandom, target_lang)
            )
            return _response_text(response).strip()
        except Exception as e:
            logger.error("Error generando glosario: %s", e)
            return ""


def _response_text(response) -> str:
    """
    response.text lanza ValueError cuando el candidato fue bloqueado
    o no trae partes de texto.
    """
    try:
        return response.text or ""
    except ValueError as e:
        raise PermanentServiceError(f"Gemini no devolvió texto: {e}") from e
