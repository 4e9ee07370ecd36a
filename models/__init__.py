"""LLM provider abstraction for noteflow.

Provides a uniform interface for model operations across different providers:
- OpenAILLM: OpenAI (default)
- MistralLLM: Mistral AI

Usage:
    from models import create_llm

    llm = create_llm("openai")
    text = llm.complete(prompt, max_tokens=500, temperature=0.3)
    transcript = llm.transcribe("/tmp/call.m4a")
"""

from typing import Optional, TYPE_CHECKING

from .base import LLM, LLMError, Transcription, VISION_EXTRACTION_PROMPT
from .mistral import MistralLLM
from .openai import OpenAILLM
from .metered import MeteredLLM

if TYPE_CHECKING:
    from noteflow.settings import Settings


def create_llm(provider: str = "openai", settings: Optional["Settings"] = None) -> LLM:
    """Create an LLM instance for the specified provider.

    Args:
        provider: LLM provider name ("openai" or "mistral")
        settings: Optional settings overriding the default model names

    Returns:
        LLM instance for the specified provider

    Raises:
        ValueError: If provider is not recognized
    """
    provider = provider.lower()
    models = {}
    if settings is not None:
        models = dict(
            analysis_model=settings.analysis_model,
            transcription_model=settings.transcription_model,
            vision_model=settings.vision_model,
        )

    if provider == "openai":
        return OpenAILLM(**models)
    elif provider == "mistral":
        return MistralLLM(**models)
    else:
        raise ValueError(
            f"Unknown LLM provider: {provider}. "
            "Must be 'openai' or 'mistral'"
        )


__all__ = [
    'LLM',
    'LLMError',
    'Transcription',
    'VISION_EXTRACTION_PROMPT',
    'MistralLLM',
    'OpenAILLM',
    'MeteredLLM',
    'create_llm',
]
