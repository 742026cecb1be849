"""
AllerScan Backend — OCR Service Unit Tests
============================================

What:  Tests for Tesseract output cleanup and the async extraction wrapper.
How:   clean_ocr_text is pure; pytesseract.image_to_string is patched so no
       Tesseract binary is needed.
"""

from unittest.mock import patch

import pytest
import pytesseract
from PIL import Image

from allerscan.exceptions import OcrError
from allerscan.services.ocr_service import OcrService, clean_ocr_text


class TestCleanOcrText:

    def test_lines_become_comma_separated(self):
        raw = "INGREDIENTS: Sugar\nWhole Milk\n\nSoy lecithin"
        assert clean_ocr_text(raw) == "INGREDIENTS Sugar, Whole Milk, Soy lecithin"

    def test_trailing_comma_and_blank_lines_removed(self):
        assert clean_ocr_text("Water, sugar, salt, vinegar,\n") == "Water, sugar, salt, vinegar"

    def test_stray_symbols_dropped(self):
        assert clean_ocr_text("Flour*, eggs|, butter (20%), salt~") == "Flour, eggs, butter (20%), salt"

    def test_capitalized_words_split_when_no_commas(self):
        assert clean_ocr_text("Sugar Cocoa Butter Whole Milk Powder") == "Sugar, Cocoa, Butter, Whole, Milk, Powder"

    def test_short_fragments_dropped_when_splitting(self):
        assert clean_ocr_text("Wheat Flour Oil Yeast Salt Of") == "Wheat, Flour, Oil, Yeast, Salt"

    @pytest.mark.parametrize("raw", ["", "   ", "a b c", "Milk\n", None])
    def test_short_text_treated_as_noise(self, raw):
        assert clean_ocr_text(raw) == ""


class TestExtractText:

    def setup_method(self):
        self.service = OcrService(language="eng")
        self.image = Image.new("RGB", (32, 32), color="white")

    @pytest.mark.asyncio
    async def test_returns_cleaned_and_raw(self):
        raw = "Peanuts\nSugar\nPalm oil\nSalt"
        with patch("allerscan.services.ocr_service.pytesseract.image_to_string", return_value=raw) as ocr:
            cleaned, returned_raw = await self.service.extract_text(self.image)

        assert cleaned == "Peanuts, Sugar, Palm oil, Salt"
        assert returned_raw == raw
        assert ocr.call_args.kwargs["lang"] == "eng"

    @pytest.mark.asyncio
    async def test_missing_binary_raises_ocr_error(self):
        with patch(
            "allerscan.services.ocr_service.pytesseract.image_to_string",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with pytest.raises(OcrError, match="not available"):
                await self.service.extract_text(self.image)

    @pytest.mark.asyncio
    async def test_tesseract_failure_raises_ocr_error(self):
        with patch(
            "allerscan.services.ocr_service.pytesseract.image_to_string",
            side_effect=pytesseract.TesseractError(1, "bad image"),
        ):
            with pytest.raises(OcrError):
                await self.service.extract_text(self.image)
