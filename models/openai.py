"""OpenAI LLM provider.

Uses the OpenAI API for chat completion, Whisper transcription and
vision-based text extraction.
"""

import base64
from typing import Optional

from openai import OpenAI

from .base import LLM, LLMError, Transcription, VISION_EXTRACTION_PROMPT


DEFAULT_ANALYSIS_MODEL = "gpt-4o-mini"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_VISION_MODEL = "gpt-4o-mini"

# Seconds before an OpenAI request gives up
REQUEST_TIMEOUT = 120.0


class OpenAILLM(LLM):
    """OpenAI implementation.

    Uses:
    - gpt-4o-mini for analysis and titles
    - whisper-1 (verbose_json) for transcription
    - gpt-4o-mini with base64 image input for vision extraction
    """

    def __init__(self, analysis_model: Optional[str] = None,
                 transcription_model: Optional[str] = None,
                 vision_model: Optional[str] = None,
                 client: Optional[OpenAI] = None) -> None:
        """Initialize OpenAI client.

        Uses OPENAI_API_KEY environment variable automatically.
        """
        self.client = client or OpenAI(timeout=REQUEST_TIMEOUT, max_retries=0)
        self.analysis_model = analysis_model or DEFAULT_ANALYSIS_MODEL
        self.transcription_model = transcription_model or DEFAULT_TRANSCRIPTION_MODEL
        self.vision_model = vision_model or DEFAULT_VISION_MODEL

    @property
    def name(self) -> str:
        return "openai"

    def complete(self, prompt: str, max_tokens: int = 1500,
                 temperature: float = 0.3, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.analysis_model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise LLMError(f"OpenAI API error: {e}")

        content = response.choices[0].message.content
        if not content:
            raise LLMError("OpenAI returned an empty response")
        return content

    def transcribe(self, audio_path: str) -> Transcription:
        self._check_audio_size(audio_path)

        try:
            with open(audio_path, "rb") as f:
                result = self.client.audio.transcriptions.create(
                    model=self.transcription_model,
                    file=f,
                    response_format="verbose_json",
                )
        except Exception as e:
            raise LLMError(f"OpenAI transcription error: {e}")

        segments = []
        for segment in getattr(result, "segments", None) or []:
            segments.append({
                "start": getattr(segment, "start", None),
                "end": getattr(segment, "end", None),
                "text": (getattr(segment, "text", "") or "").strip(),
            })

        return Transcription(
            text=(result.text or "").strip(),
            duration=getattr(result, "duration", None),
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
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                    },
                ],
            }
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.vision_model,
                messages=messages,
                max_tokens=4000,
                temperature=0.1,
            )
        except Exception as e:
            raise LLMError(f"OpenAI vision error: {e}")

        return (response.choices[0].message.content or "").strip()
