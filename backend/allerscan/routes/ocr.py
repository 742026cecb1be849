"""
AllerScan Backend — OCR Route Handler
=======================================

What:  POST /api/ocr turns a photo of an ingredient label into text.
How:   FileService validates the upload (extension, size, Pillow decode),
       OcrService runs Tesseract and cleans the result. With ?analyze=true
       the cleaned text goes straight through ScanService and the scan is
       recorded with source "image".

Request Flow:
    1. Client sends multipart/form-data with a 'file' field
    2. Upload read into memory (bounded by max_image_size)
    3. Validate → OCR → (optional) analyze
"""

import logging
from typing import Union

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.exceptions import ValidationError
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.scan import OcrAnalysisResponse, OcrResponse
from allerscan.services.file_service import file_service
from allerscan.services.ocr_service import ocr_service
from allerscan.services.scan_service import scan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["OCR"])


@router.post(
    "/ocr",
    response_model=Union[OcrAnalysisResponse, OcrResponse],
    responses={
        400: {"description": "Invalid file type, size or content", "model": ErrorResponse},
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
        422: {"description": "Text recognition failed", "model": ErrorResponse},
        503: {"description": "AI service unavailable (analyze=true only)", "model": ErrorResponse},
    },
    summary="Extract ingredient text from a label photo",
    description=(
        "Upload a PNG, JPEG, WebP, BMP or TIFF photo of an ingredient label (max 10MB). "
        "Returns the cleaned, comma-separated ingredient text and the raw OCR output. "
        "Pass analyze=true to run the allergen analysis on the result as well."
    ),
)
async def extract_label_text(
    file: UploadFile = File(..., description="Ingredient label photo"),
    analyze: bool = Query(default=False, description="Also analyze the recognized ingredients"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Union[OcrAnalysisResponse, OcrResponse]:
    content = await file.read()

    # file.size is the part's size; Content-Length would include the multipart framing
    image = file_service.validate_upload(
        filename=file.filename,
        content=content,
        content_length=file.size,
    )
    try:
        text, raw_text = await ocr_service.extract_text(image)
    finally:
        image.close()

    if not analyze:
        return OcrResponse(text=text, raw_text=raw_text, character_count=len(text))

    if not text:
        raise ValidationError(
            message="No ingredient text could be read from the image. Try a clearer photo.",
            field="file",
        )
    scan = await scan_service.analyze(db, user, text, source="image")
    return OcrAnalysisResponse(text=text, raw_text=raw_text, character_count=len(text), scan=scan)
