"""Content family classification.

The extension sets here are the only place that decides which files are
speech and which are documents. Filtering and extraction both ask classify().
"""

import os
from enum import Enum
from typing import FrozenSet, Optional


class FileFamily(Enum):
    SPEECH = "speech"
    DOCUMENT = "document"


AUDIO_EXTENSIONS: FrozenSet[str] = frozenset({
    "mp3", "wav", "m4a", "flac", "aac", "ogg", "webm", "mp4", "mpeg", "mpga",
})

PDF_EXTENSIONS: FrozenSet[str] = frozenset({"pdf"})
IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({
    "jpg", "jpeg", "png", "bmp", "tiff", "tif", "webp",
})
WORD_EXTENSIONS: FrozenSet[str] = frozenset({"docx", "doc"})

DOCUMENT_EXTENSIONS: FrozenSet[str] = PDF_EXTENSIONS | IMAGE_EXTENSIONS | WORD_EXTENSIONS


def extension_of(name: str) -> str:
    """Lower-case extension without the dot ('' if there is none)."""
    return os.path.splitext(name)[1].lower().lstrip(".")


def classify(name: str) -> Optional[FileFamily]:
    """Return the content family for a filename, or None if unsupported."""
    ext = extension_of(name)
    if ext in AUDIO_EXTENSIONS:
        return FileFamily.SPEECH
    if ext in DOCUMENT_EXTENSIONS:
        return FileFamily.DOCUMENT
    return None


def is_pdf(name: str) -> bool:
    return extension_of(name) in PDF_EXTENSIONS


def is_image(name: str) -> bool:
    return extension_of(name) in IMAGE_EXTENSIONS


def is_word(name: str) -> bool:
    return extension_of(name) in WORD_EXTENSIONS


def mime_type_for(name: str) -> str:
    """MIME type for an image filename, used for vision uploads."""
    ext = extension_of(name)
    if ext in ("jpg", "jpeg"):
        return "image/jpeg"
    if ext in ("tif", "tiff"):
        return "image/tiff"
    if ext in IMAGE_EXTENSIONS:
        return f"image/{ext}"
    return "application/octet-stream"
