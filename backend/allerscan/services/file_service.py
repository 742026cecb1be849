"""
AllerScan Backend — Upload Validation Service
===============================================

What:  Validates ingredient-label photos before OCR.
How:   Checks extension and size, then decodes the bytes with Pillow to make
       sure the payload really is one of the accepted image formats.
Who:   Called by the OCR route before OcrService.
When:  After receiving the multipart upload. Nothing is written to disk;
       the decoded image lives only for the duration of the request.

Validation order (cheapest first):
    1. Extension check:   rejects obviously wrong files without decoding
    2. Size check:        empty uploads and uploads above max_image_size
    3. Content check:     Pillow must recognize and fully load the bytes,
                          and the decoded format must be an accepted one
                          (a GIF renamed to .png is rejected here)
"""

import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from allerscan.config import settings
from allerscan.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Pillow format names accepted after decoding
ALLOWED_FORMATS = {"PNG", "JPEG", "WEBP", "BMP", "TIFF"}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff"}


class FileService:
    """Stateless validator for uploaded label images."""

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or settings.max_image_size

    def validate_extension(self, filename: Optional[str]) -> str:
        """
        Returns:
            Normalized extension (lowercase with dot).

        Raises:
            ValidationError if extension is not allowed.
        """
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'unknown'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the Content-Length header first, then the bytes actually received.

        Raises:
            ValidationError for empty uploads or uploads above the cap
        """
        max_mb = self.max_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="The uploaded file is empty.", field="file")

        if content_length and content_length > self.max_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def decode_image(self, content: bytes) -> Image.Image:
        """
        Decode the upload with Pillow.

        verify() catches truncated or corrupt files but leaves the image
        unusable, so the bytes are opened a second time and fully loaded.

        Raises:
            ValidationError if the bytes are not an accepted image format
        """
        try:
            with Image.open(io.BytesIO(content)) as probe:
                probe.verify()
                detected = probe.format
            image = Image.open(io.BytesIO(content))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            logger.info("Rejected upload that Pillow could not decode: %s", e)
            raise ValidationError(
                message="The uploaded file is not a valid image.",
                field="file",
                context={"error": type(e).__name__},
            )

        if detected not in ALLOWED_FORMATS:
            raise ValidationError(
                message=(
                    f"Image format '{detected}' is not supported. "
                    f"The file must be a PNG, JPEG, WebP, BMP or TIFF image."
                ),
                field="file",
                context={"detected_format": detected},
            )
        return image

    def validate_upload(
        self,
        filename: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Image.Image:
        """
        Complete validation pipeline for a label photo.

        Returns:
            The decoded PIL image, ready for OCR.
        """
        self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        image = self.decode_image(content)
        logger.debug("Accepted %s image %dx%d", image.format, image.width, image.height)
        return image


file_service = FileService()
