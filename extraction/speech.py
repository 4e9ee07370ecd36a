"""Speech-to-text extraction."""

from typing import Optional

from models import LLM, LLMError

from .base import Extractor, ExtractionError, ExtractionResult


def format_duration(seconds: Optional[float]) -> str:
    """Render seconds as M:SS or H:MM:SS."""
    if seconds is None:
        return "unknown"
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class SpeechExtractor(Extractor):
    """Transcribes audio through the LLM provider.

    There is no fallback: a failed transcription raises ExtractionError and
    the file is marked failed.
    """

    def __init__(self, llm: LLM) -> None:
        self.llm = llm

    def extract(self, path: str, name: str) -> ExtractionResult:
        try:
            transcription = self.llm.transcribe(path)
        except (LLMError, ValueError, OSError) as e:
            raise ExtractionError(f"Transcription failed for {name}: {e}")

        text = transcription.text or ""
        return ExtractionResult(
            text=text,
            metadata={
                "duration": transcription.duration,
                "duration_display": format_duration(transcription.duration),
                "language": transcription.language,
                "segments": transcription.segments,
                "word_count": len(text.split()),
            },
        )
