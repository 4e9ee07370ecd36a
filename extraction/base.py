"""Base classes for content extractors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


class ExtractionError(Exception):
    """Extraction failed and no fallback applies."""
    pass


TRUNCATION_MARKER = "\n\n[... content truncated ...]"


@dataclass
class ExtractionResult:
    """Plain text extracted from a file plus family-specific metadata.

    ``text`` is always a string. When every extraction method failed it holds
    a diagnostic placeholder and ``metadata['extraction_failed']`` is True.
    """
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return bool(self.metadata.get("extraction_failed"))

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class Extractor(ABC):
    """Converts a local file into an ExtractionResult."""

    @abstractmethod
    def extract(self, path: str, name: str) -> ExtractionResult:
        """Extract text from a local file.

        Args:
            path: Local path of the downloaded file
            name: Original filename (decides the sub-type)
        """
        pass


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, appending a marker if cut."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER
