# client/base.py
from abc import ABC, abstractmethod

from ficlib.client.models import TranslationOptions


class TranslationClient(ABC):
    """
    Contrato que deben cumplir todos los clientes de traducción.
    El Scheduler solo habla con esta interfaz.
    Nunca importa gemini.py ni claude.py directamente.
    """

    @abstractmethod
    def translate_batch(
        self,
        texts:       list[str],
        target_lang: str,
        fandom:      str,
        options:     TranslationOptions,
    ) -> list[str]:
        """
        Traduce un lote de bloques en una sola llamada.
        Devuelve exactamente len(texts) traducciones, en el mismo orden.
        Longitud distinta o respuesta no parseable → PermanentServiceError.
        Puede lanzar errores de red / rate limit del SDK: los clasifica
        la política de reintentos.
        """
        ...

    @abstractmethod
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
        """
        Reescribe la traducción de un bloque según la instrucción.
        Nunca lanza: ante un fallo devuelve current_translation tal cual.
        """
        ...

    @abstractmethod
    def identify_fandom(self, sample_text: str, model: str) -> str:
        """Best-effort. Ante un fallo devuelve "General"."""
        ...

    @abstractmethod
    def generate_glossary(self, fandom: str, target_lang: str, model: str) -> str:
        """Glosario breve del fandom. Ante un fallo devuelve ""."""
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """False si falta la api_key: el Scheduler no arranca."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...
