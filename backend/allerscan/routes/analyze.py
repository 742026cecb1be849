"""
AllerScan Backend — Analyze Route Handler
===========================================

What:  POST /api/analyze, the ingredient scanner.
How:   Thin wrapper over ScanService.analyze(); the scan is recorded with
       source "text".

Request Flow:
    1. Caller resolved from X-User-Email
    2. Ingredients validated (blank / too long → 400)
    3. Family allergies (or common allergens) sent to Gemini with the text
    4. Reply normalized, cross-referenced, risk escalated, scan persisted
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.middleware.request_id import request_id_var
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.scan import AnalyzeRequest, AnalyzeResponse
from allerscan.services.scan_service import scan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Analyze"])


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        400: {"description": "Missing or oversized ingredients", "model": ErrorResponse},
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
        404: {"description": "Unknown user", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        502: {"description": "AI reply could not be parsed", "model": ErrorResponse},
        503: {"description": "AI service unavailable or not configured", "model": ErrorResponse},
    },
    summary="Analyze an ingredient list for allergens",
    description=(
        "Checks the ingredient text against the family's recorded allergies "
        "(or the nine common allergens when none are recorded) and stores the result "
        "in the scan history."
    ),
)
async def analyze_ingredients(
    body: AnalyzeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AnalyzeResponse:
    return await scan_service.analyze(db, user, body.ingredients, source="text")


@router.get("/analyze", include_in_schema=False)
async def analyze_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={
            "error": "method_not_allowed",
            "message": "Method not allowed",
            "request_id": request_id_var.get(""),
        },
        headers={"Allow": "POST"},
    )
