"""
AllerScan Backend — Scan Request/Response Schemas
===================================================

What:  API contract for ingredient analysis, scan history and label OCR.

AnalysisResult combines the normalized AI reply with the local
cross-reference against the family's recorded allergies; the final
risk_level may be higher than the one the AI reported.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

RISK_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class AnalyzeRequest(BaseModel):
    """Body of POST /api/analyze."""
    ingredients: str = Field(description="Ingredient list as printed on the label")


# ══════════════════════════════════════════════════════════════════════════
# Analysis
# ══════════════════════════════════════════════════════════════════════════


class IngredientHighlights(BaseModel):
    safe: List[str] = Field(default_factory=list)
    concerning: List[str] = Field(default_factory=list, description="May-contain / facility warnings")
    problematic: List[str] = Field(default_factory=list, description="Direct allergens")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AllergenMatch(BaseModel):
    """A family member's recorded allergy that matched a detected allergen."""
    member_id: uuid.UUID
    member_name: str
    allergen: str = Field(description="Allergy as recorded for the member")
    detected_as: str = Field(description="Allergen string as returned by the AI")
    severity: str = Field(description="Lower-case severity of the recorded allergy")


class AnalysisResult(BaseModel):
    """
    Full analysis returned by POST /api/analyze.

    risk_level is the final level after escalation; ai_risk_level is the
    level the AI reported before the family's severities were applied.
    """
    is_problematic: bool
    detected_allergens: List[str]
    analysis: str
    risk_level: str
    ai_risk_level: str
    worst_severity: Optional[str] = None
    recommendations: List[str]
    ingredient_highlights: IngredientHighlights
    member_matches: List[AllergenMatch] = Field(default_factory=list)
    scan_date: datetime
    family_allergies_checked: List[str]


class AnalyzeResponse(BaseModel):
    success: bool = True
    scan_id: uuid.UUID
    analysis: AnalysisResult


class ScanListItem(BaseModel):
    """Compact history row; ingredient text truncated to 200 characters."""
    id: uuid.UUID
    ingredients_preview: str
    risk_level: str
    is_problematic: bool
    detected_allergens: List[str]
    source: str
    created_at: datetime


class ScanListResponse(BaseModel):
    """
    Cursor-paginated scan history.

    next_cursor is the created_at of the last item; pass it back as
    `cursor` to fetch the next page.
    """
    scans: List[ScanListItem]
    total_count: int
    next_cursor: Optional[str] = None
    has_more: bool


class ScanDetail(BaseModel):
    """Returned by GET /api/scans/{scan_id}."""
    id: uuid.UUID
    ingredients: str
    source: str
    created_at: datetime
    analysis: AnalysisResult


class OcrResponse(BaseModel):
    """Returned by POST /api/ocr."""
    text: str = Field(description="Cleaned, comma-separated ingredient text")
    raw_text: str = Field(description="Text exactly as recognized by Tesseract")
    character_count: int


class OcrAnalysisResponse(OcrResponse):
    """Returned by POST /api/ocr?analyze=true."""
    scan: AnalyzeResponse = Field(description="Analysis of the recognized text, already saved to history")
