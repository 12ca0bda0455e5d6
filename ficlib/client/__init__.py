from ficlib.client.base import TranslationClient
from ficlib.client.models import ClientConfig, TranslationOptions
from ficlib.client.prompt_builder import build_batch_prompt, build_refine_prompt
from ficlib.client.retry import call_with_retry, is_retryable

__all__ = [
    "TranslationClient",
    "ClientConfig",
    "TranslationOptions",
    "build_batch_prompt",
    "build_refine_prompt",
    "call_with_retry",
    "is_retryable",
]
