import os

from ficlib.models import SourceDocument
from ficlib.source.base import SourceProvider
from ficlib.source.pdf_provider import PdfSourceProvider
from ficlib.source.text_provider import TextSourceProvider


class UnsupportedFormatError(Exception):
    """Se lanza cuando ningún provider registrado puede manejar el archivo."""
    pass


class SourceFactory:
    """
    Registro central de Source Providers.

    Los providers se evalúan en orden de registro.
    El primero que responda True a can_handle() gana.
    """

    def __init__(self):
        self._providers: list[SourceProvider] = [
            TextSourceProvider(),
            PdfSourceProvider(),
        ]

    def register(self, provider: SourceProvider) -> None:
        """Registra un provider adicional al inicio de la lista (mayor prioridad)."""
        self._providers.insert(0, provider)

    def parse(self, file_path: str) -> SourceDocument:
        """
        Raises:
            FileNotFoundError: si el archivo no existe.
            UnsupportedFormatError: si ningún provider puede manejarlo.
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Archivo no encontrado: {file_path}")

        for provider in self._providers:
            if provider.can_handle(file_path):
                return provider.parse(file_path)

        ext = os.path.splitext(file_path)[1].lower()
        raise UnsupportedFormatError(
            f"Formato '{ext}' no soportado. Formatos disponibles: .txt, .md, .pdf"
        )
