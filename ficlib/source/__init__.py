from ficlib.source.base import SourceProvider
from ficlib.source.factory import SourceFactory, UnsupportedFormatError
from ficlib.source.pdf_provider import PdfSourceProvider
from ficlib.source.text_provider import TextSourceProvider, split_text_into_blocks

__all__ = [
    "SourceProvider",
    "SourceFactory",
    "UnsupportedFormatError",
    "TextSourceProvider",
    "PdfSourceProvider",
    "split_text_into_blocks",
]
