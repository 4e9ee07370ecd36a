"""Dataclasses passed between pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from extraction import ExtractionResult, FileFamily
from storage import FileIdentity


SENTIMENTS = ("positive", "negative", "neutral", "mixed")


@dataclass
class DownloadedFile:
    """A source file that has been fetched to local disk.

    The local copy lives only inside the pipeline's download scope and is
    deleted when that scope exits.
    """
    identity: FileIdentity
    local_path: str
    sanitized_name: str
    size_bytes: int
    source_path: str                        # Path as reported by the backend
    family: FileFamily
    shareable_url: Optional[str] = None


@dataclass
class InsightResult:
    """Structured analysis of extracted text."""
    title: str
    summary: str
    key_points: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    sentiment: str = "neutral"              # One of SENTIMENTS
    used_fallback: bool = False             # Heuristic parser or no model output


@dataclass
class PublishRecord:
    """Everything a sink needs to write one page."""
    identity: FileIdentity
    display_name: str                       # Sanitized original filename
    family: FileFamily
    source_path: str
    size_bytes: int
    extraction: ExtractionResult
    insight: InsightResult
    shareable_url: Optional[str] = None
    processed_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def build(cls, downloaded: DownloadedFile, extraction: ExtractionResult,
              insight: InsightResult) -> "PublishRecord":
        return cls(
            identity=downloaded.identity,
            display_name=downloaded.sanitized_name,
            family=downloaded.family,
            source_path=downloaded.source_path,
            size_bytes=downloaded.size_bytes,
            extraction=extraction,
            insight=insight,
            shareable_url=downloaded.shareable_url,
        )
