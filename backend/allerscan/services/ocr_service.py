"""
AllerScan Backend — OCR Service
=================================

What:  Reads ingredient labels from photos with Tesseract and turns the raw
       recognition output into a comma-separated ingredient string.
How:   pytesseract.image_to_string runs in a worker thread so the event loop
       stays free; clean_ocr_text() is a pure function.
Who:   The OCR route.
"""

import asyncio
import logging
import re
from typing import Tuple

import pytesseract
from PIL import Image

from allerscan.config import settings
from allerscan.exceptions import OcrError

logger = logging.getLogger(__name__)

_NEWLINES = re.compile(r"\n+")
_REPEATED_COMMAS = re.compile(r",\s*,+")
_DISALLOWED_CHARS = re.compile(r"[^\w\s,().%-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_TRAILING_COMMA = re.compile(r",\s*$")
_BEFORE_CAPITAL = re.compile(r"\s+(?=[A-Z])")

MIN_INGREDIENT_TEXT = 20


def clean_ocr_text(raw: str) -> str:
    """
    Normalize Tesseract output into an ingredient list.

    Text that already has commas is returned as-is after cleanup. Longer text
    without commas is split before capital letters ("Sugar Cocoa Butter Milk"
    → "Sugar, Cocoa, Butter, Milk"). Anything of 20 characters or fewer is
    treated as noise and yields "".
    """
    text = _NEWLINES.sub(", ", raw or "")
    text = _REPEATED_COMMAS.sub(",", text)
    text = _DISALLOWED_CHARS.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _TRAILING_COMMA.sub("", text)
    text = text.strip()

    if len(text) <= MIN_INGREDIENT_TEXT:
        return ""
    if "," in text:
        return text

    parts = [part for part in _BEFORE_CAPITAL.split(text) if len(part) > 2]
    return ", ".join(parts)


class OcrService:
    """Tesseract wrapper; one instance per process."""

    def __init__(self, language: str = None, tesseract_cmd: str = None):
        self.language = language or settings.ocr_language
        cmd = tesseract_cmd or settings.tesseract_cmd
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd

    async def extract_text(self, image: Image.Image) -> Tuple[str, str]:
        """
        Recognize text on a decoded image.

        Returns:
            (cleaned_text, raw_text)

        Raises:
            OcrError: Tesseract is missing or failed on this image
        """
        try:
            raw = await asyncio.to_thread(pytesseract.image_to_string, image, lang=self.language)
        except pytesseract.TesseractNotFoundError as e:
            logger.error("Tesseract binary not found: %s", e)
            raise OcrError(
                message="Text recognition is not available on this server.",
                context={"error": "tesseract_not_found"},
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            logger.warning("Tesseract failed: %s", e)
            raise OcrError(context={"error": type(e).__name__})

        cleaned = clean_ocr_text(raw)
        logger.info("OCR extracted %d raw chars, %d after cleanup", len(raw), len(cleaned))
        return cleaned, raw


ocr_service = OcrService()
