"""Content extraction for noteflow.

Converts a downloaded file into plain text plus family metadata:
- SpeechExtractor: transcription through the LLM provider
- DocumentExtractor: pdfplumber / Tesseract / python-docx with vision fallback

Usage:
    from extraction import ContentExtractor, classify

    family = classify("meeting.m4a")
    result = extractor.extract(local_path, "meeting.m4a", family)
"""

from typing import Dict, Optional

from models import LLM

from .base import ExtractionError, ExtractionResult, Extractor, truncate_text
from .families import (
    FileFamily,
    AUDIO_EXTENSIONS,
    DOCUMENT_EXTENSIONS,
    classify,
    extension_of,
)
from .speech import SpeechExtractor, format_duration
from .document import DocumentExtractor


class ContentExtractor:
    """Routes a file to the extractor for its content family."""

    def __init__(self, extractors: Dict[FileFamily, Extractor]) -> None:
        self.extractors = extractors

    @classmethod
    def from_llm(cls, llm: LLM, ocr_language: str = "eng",
                 max_chars: int = 50000) -> "ContentExtractor":
        return cls({
            FileFamily.SPEECH: SpeechExtractor(llm),
            FileFamily.DOCUMENT: DocumentExtractor(llm, ocr_language=ocr_language,
                                                   max_chars=max_chars),
        })

    def extract(self, path: str, name: str,
                family: Optional[FileFamily] = None) -> ExtractionResult:
        """Extract text from ``path``.

        Raises:
            ExtractionError: For unsupported files, or when speech transcription fails
        """
        family = family or classify(name)
        extractor = self.extractors.get(family) if family else None
        if extractor is None:
            raise ExtractionError(f"No extractor for {name}")
        return extractor.extract(path, name)


__all__ = [
    'ContentExtractor',
    'DocumentExtractor',
    'ExtractionError',
    'ExtractionResult',
    'Extractor',
    'FileFamily',
    'SpeechExtractor',
    'AUDIO_EXTENSIONS',
    'DOCUMENT_EXTENSIONS',
    'classify',
    'extension_of',
    'format_duration',
    'truncate_text',
]
