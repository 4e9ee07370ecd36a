"""Image preprocessing and OCR helpers."""

import io
from typing import Tuple

import pytesseract
from PIL import Image, ImageFilter, ImageOps


def preprocess_image(image_bytes: bytes) -> bytes:
    """Grayscale, normalize contrast and sharpen an image for OCR.

    Returns:
        PNG-encoded bytes of the processed image

    Raises:
        OSError / PIL errors if the bytes cannot be decoded
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        processed = ImageOps.grayscale(image)
        processed = ImageOps.autocontrast(processed)
        processed = processed.filter(ImageFilter.SHARPEN)

        buffer = io.BytesIO()
        processed.save(buffer, format="PNG")
        return buffer.getvalue()


def ocr_image(image_bytes: bytes, language: str = "eng") -> Tuple[str, float]:
    """Run Tesseract on an image.

    Returns:
        Tuple of (text, mean word confidence 0-100)

    Raises:
        pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        image.load()
        text = pytesseract.image_to_string(image, lang=language)
        data = pytesseract.image_to_data(image, lang=language, output_type=pytesseract.Output.DICT)

    confidences = []
    for conf, word in zip(data.get("conf", []), data.get("text", [])):
        try:
            value = float(conf)
        except (TypeError, ValueError):
            continue
        if value >= 0 and str(word).strip():
            confidences.append(value)

    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text.strip(), round(confidence, 1)
