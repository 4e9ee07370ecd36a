"""Mistral AI LLM provider.

Uses the Mistral AI API for chat completion, Voxtral transcription and
Pixtral vision extraction.
"""

import base64
import os
from typing import Optional

from mistralai import Mistral

from .base import LLM, LLMError, Transcription, VISION_EXTRACTION_PROMPT


DEFAULT_ANALYSIS_MODEL = "mistral-small-latest"
DEFAULT_TRANSCRIPTION_MODEL = "voxtral-mini-latest"
DEFAULT_VISION_MODEL = "pixtral-12b-latest"

# Milliseconds before a Mistral request gives up
REQUEST_TIMEOUT_MS = 120_000


class MistralLLM(LLM):
    """Mistral AI implementation.

    Uses:
    - mistral-small-latest for analysis and titles
    - voxtral-mini-latest for transcription
    - pixtral-12b-latest with base64 image input for vision extraction
    """

    def __init__(self, analysis_model: Optional[str] = None,
                 transcription_model: Optional[str] = None,
                 vision_model: Optional[str] = None,
                 client: Optional[Mistral] = None) -> None:
        """Initialize Mistral client.

        Raises:
            KeyError: If MISTRAL_API_KEY environment variable is not set
        """
        if client is None:
            api_key = os.environ["MISTRAL_API_KEY"]
            client = Mistral(api_key=api_key, timeout_ms=REQUEST_TIMEOUT_MS)
        self.client = client
        self.analysis_model = analysis_model or DEFAULT_ANALYSIS_MODEL
        self.transcription_model = transcription_model or DEFAULT_TRANSCRIPTION_MODEL
        self.vision_model = vision_model or DEFAULT_VISION_MODEL

    @property
    def name(self) -> str:
        return "mistral"

    def complete(self, prompt: str, max_tokens: int = 1500,
                 temperature: float = 0.3, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.complete(
                model=self.analysis_model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise LLMError(f"Mistral API error: {e}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("Mistral returned an empty response")
        return content

    def transcribe(self, audio_path: str) -> Transcription:
        self._check_audio_size(audio_path)

        try:
            with open(audio_path, "rb") as f:
                result = self.client.audio.transcriptions.complete(
                    model=self.transcription_model,
                    file={
                        "content": f,
                        "file_name": os.path.basename(audio_path),
                    },
                )
        except Exception as e:
            raise LLMError(f"Mistral transcription error: {e}")

        segments = []
        for segment in getattr(result, "segments", None) or []:
            segments.append({
                "start": getattr(segment, "start", None),
                "end": getattr(segment, "end", None),
                "text": (getattr(segment, "text", "") or "").strip(),
            })

        duration = None
        usage = getattr(result, "usage", None)
        if usage is not None:
            duration = getattr(usage, "prompt_audio_seconds", None)
        if duration is None and segments:
            duration = segments[-1].get("end")

        return Transcription(
            text=(result.text or "").strip(),
            duration=duration,
            language=getattr(result, "language", None),
            segments=segments,
        )

    def vision_extract(self, image_bytes: bytes, instruction: str = VISION_EXTRACTION_PROMPT,
                       mime_type: str = "image/png") -> str:
        encoded = base64.b64encode(image_bytes).decode("utf-8")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instruction},
                    {"type": "image_url", "image_url": f"data:{mime_type};base64,{encoded}"},
                ],
            }
        ]

        try:
            response = self.client.chat.complete(
                model=self.vision_model,
                messages=messages,
                max_tokens=4000,
                temperature=0.1,
            )
        except Exception as e:
            raise LLMError(f"Mistral vision error: {e}")

        content = response.choices[0].message.content if response.choices else ""
        return (content or "").strip()
