"""Base classes for LLM providers.

This module defines the abstract interface that all LLM backends must implement,
and the prompts shared between them.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class LLMError(Exception):
    """Base exception for LLM operations."""
    pass


@dataclass
class Transcription:
    """Result of a speech-to-text call.

    Attributes:
        text: Full transcript
        duration: Audio length in seconds (None if the provider doesn't say)
        language: Detected language code or name
        segments: Provider segments (start, end, text)
    """
    text: str
    duration: Optional[float] = None
    language: Optional[str] = None
    segments: List[Dict[str, Any]] = field(default_factory=list)


# Maximum audio upload size accepted by the transcription endpoints (25MB)
MAX_AUDIO_SIZE_MB = 25


INSIGHT_SYSTEM_PROMPT = (
    "You are an expert at analyzing transcripts and documents. "
    "You always answer with a single JSON object and nothing else."
)


# Structured analysis prompt; {content_kind} is "transcript" or "document"
INSIGHT_PROMPT = """Analyze the following {content_kind} and respond with a JSON object in exactly this shape:

{{
  "summary": "<2-4 sentence summary of the content>",
  "keyPoints": ["<most important point>", "..."],
  "actionItems": ["<task or follow-up mentioned>", "..."],
  "topics": ["<main topic or theme>", "..."],
  "sentiment": "<one of: positive, negative, neutral, mixed>"
}}

Guidelines:
- Key points: 3-7 short bullet-style statements.
- Action items: only concrete tasks, decisions to make or follow-ups. Use an empty list if there are none.
- Topics: 2-5 short labels.
- Do not wrap the JSON in markdown fences.

{content_kind_title}:
---
{text}
---
"""


TITLE_PROMPT = """Write a short, descriptive title for the following {content_kind}.

Rules:
- Between 2 and 7 words.
- No quotes, no trailing punctuation, no prefix like "Title:".
- Respond with the title only.

{content_kind_title}:
---
{text}
---
"""


VISION_EXTRACTION_PROMPT = (
    "Extract all of the text visible in this image, preserving reading order "
    "and paragraph breaks. Respond with the extracted text only. If there is "
    "no readable text, respond with an empty string."
)


class LLM(ABC):
    """Abstract base class for LLM providers.

    All LLM providers (OpenAI, Mistral) implement this interface for text
    completion, speech transcription and vision-based text extraction.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'mistral', 'openai')."""
        pass

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int = 1500,
                 temperature: float = 0.3, system: Optional[str] = None) -> str:
        """Run a single-turn chat completion.

        Args:
            prompt: User prompt
            max_tokens: Upper bound on generated tokens
            temperature: Sampling temperature
            system: Optional system prompt

        Returns:
            The model's text response

        Raises:
            LLMError: If the API call fails or returns no content
        """
        pass

    @abstractmethod
    def transcribe(self, audio_path: str) -> Transcription:
        """Transcribe an audio file.

        Args:
            audio_path: Path to a local audio file

        Returns:
            Transcription with text, duration, language and segments

        Raises:
            LLMError: If the API call fails
            ValueError: If the file is too large for the provider
        """
        pass

    @abstractmethod
    def vision_extract(self, image_bytes: bytes, instruction: str = VISION_EXTRACTION_PROMPT,
                       mime_type: str = "image/png") -> str:
        """Extract text from an image with a vision-capable model.

        Args:
            image_bytes: Encoded image
            instruction: What to extract
            mime_type: MIME type of ``image_bytes``

        Returns:
            Extracted text (may be empty)

        Raises:
            LLMError: If the API call fails
        """
        pass

    # =========================================================================
    # Helper methods (shared by all implementations)
    # =========================================================================

    def _check_audio_size(self, path: str) -> None:
        """Validate audio size is under the provider's upload limit.

        Raises:
            ValueError: If the file exceeds the size limit
        """
        file_size = os.path.getsize(path)
        if file_size > MAX_AUDIO_SIZE_MB * 1024 * 1024:
            raise ValueError(
                f"Audio exceeds {MAX_AUDIO_SIZE_MB}MB transcription limit "
                f"({file_size / 1024 / 1024:.1f}MB)"
            )


def build_insight_prompt(text: str, content_kind: str) -> str:
    return INSIGHT_PROMPT.format(
        content_kind=content_kind,
        content_kind_title=content_kind.capitalize(),
        text=text,
    )


def build_title_prompt(text: str, content_kind: str) -> str:
    return TITLE_PROMPT.format(
        content_kind=content_kind,
        content_kind_title=content_kind.capitalize(),
        text=text,
    )
