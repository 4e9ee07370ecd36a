"""Document and image text extraction.

Each sub-type has a primary method and a fallback chain:

    pdf    pdfplumber (layout preserved)
           -> render page 1 with PyMuPDF + vision model     (ai_vision)
           -> placeholder                                    (failed)
    image  Pillow preprocessing (original bytes if that fails)
           -> Tesseract OCR                                  (ocr)
           -> vision model                                   (ai_vision)
           -> placeholder                                    (failed)
    docx   python-docx paragraphs and tables                 (docx)
           -> placeholder                                    (failed)

DocumentExtractor.extract() never raises: the placeholder records that
processing was attempted and why it produced nothing.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import docx
import pdfplumber
import pymupdf

from models import LLM, VISION_EXTRACTION_PROMPT

from .base import Extractor, ExtractionResult, truncate_text
from .families import is_image, is_pdf, is_word, mime_type_for
from .images import ocr_image, preprocess_image


# Fewer characters than this from pdfplumber means "no usable text layer"
MIN_PDF_TEXT_CHARS = 20

# Zoom factor for rendering the first PDF page for the vision model
RENDER_ZOOM = 2.0


# ---------------------------------------------------------------------------
# Primary extraction methods
# ---------------------------------------------------------------------------

def _tidy_layout_text(text: str) -> str:
    """Strip trailing padding from layout-mode lines and squeeze blank runs."""
    lines = [line.rstrip() for line in text.splitlines()]
    tidy = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", tidy).strip()


def extract_pdf_text(path: str) -> Tuple[str, int]:
    """Extract the text layer of a PDF.

    Returns:
        Tuple of (text, page_count)
    """
    with pdfplumber.open(path) as pdf:
        pages = [page.extract_text(layout=True) or "" for page in pdf.pages]
        page_count = len(pdf.pages)
    return _tidy_layout_text("\n\n".join(pages)), page_count


def render_first_page(path: str, zoom: float = RENDER_ZOOM) -> bytes:
    """Render page 1 of a PDF to PNG bytes."""
    with pymupdf.open(path) as doc:
        if doc.page_count == 0:
            raise ValueError("PDF has no pages")
        pixmap = doc[0].get_pixmap(matrix=pymupdf.Matrix(zoom, zoom))
        return pixmap.tobytes("png")


def extract_docx_text(path: str) -> str:
    """Paragraph and table text of a .docx file."""
    document = docx.Document(path)
    parts: List[str] = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n\n".join(parts).strip()


def placeholder_text(kind: str, name: str, reason: str) -> str:
    return (
        f"[{kind} Text Extraction Failed]\n\n"
        f"File: {name}\n"
        f"Reason: {reason}\n\n"
        "The file was received and processed, but no readable text could be extracted."
    )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class DocumentExtractor(Extractor):
    """Extracts text from PDFs, images and Word documents."""

    def __init__(self, llm: Optional[LLM] = None, ocr_language: str = "eng",
                 max_chars: int = 50000, min_pdf_chars: int = MIN_PDF_TEXT_CHARS) -> None:
        """Initialize the extractor.

        Args:
            llm: Provider used for the vision fallback (None disables it)
            ocr_language: Tesseract language code
            max_chars: Truncate extracted text beyond this length
            min_pdf_chars: Below this, a PDF's text layer counts as missing
        """
        self.llm = llm
        self.ocr_language = ocr_language
        self.max_chars = max_chars
        self.min_pdf_chars = min_pdf_chars

    def extract(self, path: str, name: str) -> ExtractionResult:
        try:
            if is_pdf(name):
                result = self._extract_pdf(path, name)
            elif is_image(name):
                result = self._extract_image(path, name)
            elif is_word(name):
                result = self._extract_word(path, name)
            else:
                result = self._failed("Document", name, "unsupported document type", {})
        except Exception as e:
            result = self._failed("Document", name, str(e), {})

        result.text = truncate_text(result.text, self.max_chars)
        result.metadata.setdefault("word_count", len(result.text.split()))
        return result

    def _failed(self, kind: str, name: str, reason: str,
                metadata: Dict[str, Any]) -> ExtractionResult:
        metadata.update({
            "extraction_method": "failed",
            "extraction_failed": True,
            "error": reason,
        })
        return ExtractionResult(text=placeholder_text(kind, name, reason), metadata=metadata)

    def _vision(self, image_bytes: bytes, mime_type: str) -> str:
        if self.llm is None:
            raise RuntimeError("no vision model configured")
        return self.llm.vision_extract(image_bytes, VISION_EXTRACTION_PROMPT, mime_type)

    # -------------------------------------------------------------------------

    def _extract_pdf(self, path: str, name: str) -> ExtractionResult:
        page_count: Optional[int] = None
        try:
            text, page_count = extract_pdf_text(path)
            if len(text) >= self.min_pdf_chars:
                return ExtractionResult(text=text, metadata={
                    "page_count": page_count,
                    "extraction_method": "pdf_text",
                })
            reason = f"only {len(text)} characters in text layer"
        except Exception as e:
            reason = f"pdfplumber failed: {e}"

        try:
            image_bytes = render_first_page(path)
            text = self._vision(image_bytes, "image/png").strip()
            if text:
                return ExtractionResult(text=text, metadata={
                    "page_count": page_count,
                    "extraction_method": "ai_vision",
                    "fallback_reason": reason,
                })
            reason = f"{reason}; vision model returned no text"
        except Exception as e:
            reason = f"{reason}; vision fallback failed: {e}"

        return self._failed("PDF", name, reason, {"page_count": page_count})

    def _extract_image(self, path: str, name: str) -> ExtractionResult:
        with open(path, "rb") as f:
            original = f.read()

        preprocessed = True
        try:
            image_bytes = preprocess_image(original)
        except Exception:
            image_bytes = original
            preprocessed = False

        try:
            text, confidence = ocr_image(image_bytes, self.ocr_language)
            if text:
                return ExtractionResult(text=text, metadata={
                    "page_count": 1,
                    "confidence": confidence,
                    "extraction_method": "ocr",
                    "preprocessed": preprocessed,
                })
            reason = "OCR found no text"
        except Exception as e:
            reason = f"OCR failed: {e}"

        try:
            mime_type = "image/png" if preprocessed else mime_type_for(name)
            text = self._vision(image_bytes, mime_type).strip()
            if text:
                return ExtractionResult(text=text, metadata={
                    "page_count": 1,
                    "extraction_method": "ai_vision",
                    "preprocessed": preprocessed,
                    "fallback_reason": reason,
                })
            reason = f"{reason}; vision model returned no text"
        except Exception as e:
            reason = f"{reason}; vision fallback failed: {e}"

        return self._failed("Image", name, reason, {"page_count": 1, "preprocessed": preprocessed})

    def _extract_word(self, path: str, name: str) -> ExtractionResult:
        try:
            text = extract_docx_text(path)
        except Exception as e:
            return self._failed("Document", name, f"python-docx failed: {e}", {})

        if not text:
            return self._failed("Document", name, "document contains no text", {})
        return ExtractionResult(text=text, metadata={"extraction_method": "docx"})
