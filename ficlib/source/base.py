from abc import ABC, abstractmethod

from ficlib.models import SourceDocument


class SourceProvider(ABC):
    """Convierte un documento en bloques ya clasificados (text/header/separator)."""

    @abstractmethod
    def can_handle(self, file_path: str) -> bool:
        ...

    @abstractmethod
    def parse(self, file_path: str) -> SourceDocument:
        ...
