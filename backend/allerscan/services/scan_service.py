"""
AllerScan Backend — Scan Service (Business Logic Orchestrator)
================================================================

What:  Runs an ingredient analysis end-to-end and serves the scan history.
How:   Composes FamilyService, GeminiService and the allergen matcher.
Who:   POST /api/analyze, POST /api/ocr?analyze=true and the /api/scans routes.

Orchestration Flow (POST /api/analyze):
    ┌──────────┐   ┌──────────────┐   ┌─────────────┐   ┌─────────────┐   ┌─────────┐
    │ Validate │──▶│ Load family  │──▶│ Gemini call │──▶│ Normalize & │──▶│ Persist │
    │  input   │   │  allergies   │   │  (analysis) │   │ cross-ref   │   │  (DB)   │
    └──────────┘   └──────────────┘   └─────────────┘   └─────────────┘   └─────────┘

    The checked list is the family's recorded allergies, or the common
    allergens when nobody has any recorded. The AI's risk level is then
    raised to the floor implied by the worst matched severity.

Pagination (GET /api/scans):
    Cursor = ISO created_at of the last item on the previous page.
    One extra row is fetched to decide has_more without a second query;
    the total is a separate COUNT over the same filters.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.config import settings
from allerscan.exceptions import DatabaseError, NotFoundError, ValidationError
from allerscan.models.scan import ScanHistory
from allerscan.models.user import User
from allerscan.schemas.scan import (
    RISK_LEVELS,
    AnalysisResult,
    AnalyzeResponse,
    ScanDetail,
    ScanListItem,
    ScanListResponse,
)
from allerscan.services.allergen_matcher import (
    COMMON_ALLERGENS,
    collect_family_allergens,
    cross_reference,
    normalize_analysis,
)
from allerscan.services.family_service import family_service
from allerscan.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


def _result_from_row(scan: ScanHistory) -> AnalysisResult:
    """Rebuild the API analysis from a stored row and its metadata."""
    meta: Dict[str, Any] = scan.scan_metadata or {}
    return AnalysisResult(
        is_problematic=scan.is_problematic,
        detected_allergens=scan.detected_allergens or [],
        analysis=scan.analysis,
        risk_level=scan.risk_level,
        ai_risk_level=meta.get("ai_risk_level", scan.risk_level),
        worst_severity=meta.get("worst_severity"),
        recommendations=scan.recommendations or [],
        ingredient_highlights=meta.get("ingredient_highlights") or {},
        member_matches=meta.get("member_matches") or [],
        scan_date=scan.created_at,
        family_allergies_checked=meta.get("family_allergies") or [],
    )


class ScanService:
    """
    Business logic layer for scans.

    Error Handling Strategy:
        Input problems raise ValidationError before any outbound call.
        LLM errors propagate with their own type (LLMServiceError,
        AIResponseFormatError, CircuitBreakerOpenError, AIConfigurationError).
        SQLAlchemy failures are wrapped in DatabaseError.
    """

    def validate_ingredients(self, ingredients: Optional[str]) -> str:
        text = (ingredients or "").strip()
        if not text:
            raise ValidationError(message="Please provide ingredients to analyze", field="ingredients")
        if len(text) > settings.max_ingredients_length:
            raise ValidationError(
                message=(
                    f"Ingredient list is too long ({len(text)} characters). "
                    f"Maximum is {settings.max_ingredients_length}."
                ),
                field="ingredients",
                context={"max_length": settings.max_ingredients_length},
            )
        return text

    async def analyze(
        self,
        db: AsyncSession,
        user: User,
        ingredients: Optional[str],
        source: str = "text",
    ) -> AnalyzeResponse:
        """
        Analyze an ingredient list for the caller's family and record it.

        Args:
            db: Async database session
            user: Caller
            ingredients: Label text as submitted
            source: "text" for pasted input, "image" for OCR output

        Raises:
            ValidationError: blank or oversized ingredients (→ 400)
            AIConfigurationError / LLMServiceError / AIResponseFormatError /
            CircuitBreakerOpenError: from the Gemini call
            DatabaseError: persisting the scan failed
        """
        text = self.validate_ingredients(ingredients)

        members = await family_service.get_members(db, user)
        checked = collect_family_allergens(members) or list(COMMON_ALLERGENS)

        raw = await gemini_service.analyze_ingredients(text, checked)
        result = cross_reference(normalize_analysis(raw), members)

        now = datetime.now(timezone.utc)
        matches = [{**m, "member_id": str(m["member_id"])} for m in result["member_matches"]]
        scan = ScanHistory(
            user_id=user.id,
            ingredients=text,
            analysis=result["analysis"],
            detected_allergens=result["detected_allergens"],
            risk_level=result["risk_level"],
            is_problematic=result["is_problematic"],
            recommendations=result["recommendations"],
            scan_metadata={
                "family_allergies": checked,
                "ingredient_highlights": result["ingredient_highlights"],
                "member_matches": matches,
                "ai_risk_level": result["ai_risk_level"],
                "worst_severity": result["worst_severity"],
                "timestamp": now.isoformat(),
            },
            source=source,
            created_at=now,
        )
        db.add(scan)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving scan: %s", type(e).__name__, exc_info=True)
            raise DatabaseError(
                message="Could not save the scan. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Scan %s saved: risk=%s (ai=%s), %d detected, %d member matches",
            scan.id,
            result["risk_level"],
            result["ai_risk_level"],
            len(result["detected_allergens"]),
            len(matches),
        )

        return AnalyzeResponse(
            scan_id=scan.id,
            analysis=AnalysisResult(
                is_problematic=result["is_problematic"],
                detected_allergens=result["detected_allergens"],
                analysis=result["analysis"],
                risk_level=result["risk_level"],
                ai_risk_level=result["ai_risk_level"],
                worst_severity=result["worst_severity"],
                recommendations=result["recommendations"],
                ingredient_highlights=result["ingredient_highlights"],
                member_matches=result["member_matches"],
                scan_date=now,
                family_allergies_checked=checked,
            ),
        )

    async def _get_owned(self, db: AsyncSession, user: User, scan_id: UUID) -> ScanHistory:
        try:
            result = await db.execute(
                select(ScanHistory).where(
                    ScanHistory.id == scan_id,
                    ScanHistory.user_id == user.id,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Database error fetching scan %s: %s", scan_id, type(e).__name__)
            raise DatabaseError(
                message="Could not retrieve the scan. Please try again.",
                context={"scan_id": str(scan_id)},
            )
        scan = result.scalar_one_or_none()
        if scan is None:
            # Other users' scans are indistinguishable from missing ones
            raise NotFoundError(resource="scan", resource_id=str(scan_id))
        return scan

    async def get_scan(self, db: AsyncSession, user: User, scan_id: UUID) -> ScanDetail:
        """
        Raises:
            NotFoundError: scan does not exist or belongs to someone else (→ 404)
        """
        scan = await self._get_owned(db, user, scan_id)
        return ScanDetail(
            id=scan.id,
            ingredients=scan.ingredients,
            source=scan.source,
            created_at=scan.created_at,
            analysis=_result_from_row(scan),
        )

    async def delete_scan(self, db: AsyncSession, user: User, scan_id: UUID) -> None:
        scan = await self._get_owned(db, user, scan_id)
        try:
            await db.delete(scan)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting scan %s: %s", scan_id, type(e).__name__)
            raise DatabaseError(context={"scan_id": str(scan_id)})
        logger.info("Deleted scan %s", scan_id)

    async def list_scans(
        self,
        db: AsyncSession,
        user: User,
        limit: int = 20,
        cursor: Optional[str] = None,
        sort: str = "created_at_desc",
        risk_level: Optional[str] = None,
    ) -> ScanListResponse:
        """
        List the caller's scans with cursor-based pagination.

        Args:
            limit: Maximum items per page (1-100)
            cursor: ISO datetime from the previous page's next_cursor;
                    an unparseable cursor starts from the beginning
            sort: 'created_at_desc' (default) or 'created_at_asc'
            risk_level: Optional filter, case-insensitive

        Raises:
            ValidationError: unknown risk level or sort (→ 400)
        """
        if sort not in ("created_at_desc", "created_at_asc"):
            raise ValidationError(message=f"Invalid sort '{sort}'", field="sort")

        filters = [ScanHistory.user_id == user.id]
        if risk_level:
            level = risk_level.strip().upper()
            if level not in RISK_LEVELS:
                raise ValidationError(
                    message=f"Invalid risk level '{risk_level}'. Must be one of: {', '.join(RISK_LEVELS)}",
                    field="risk_level",
                )
            filters.append(ScanHistory.risk_level == level)

        query = select(ScanHistory).where(*filters)

        if cursor:
            try:
                cursor_dt = datetime.fromisoformat(cursor)
            except ValueError:
                logger.debug("Ignoring unparseable scan cursor %r", cursor)
                cursor_dt = None
            if cursor_dt is not None:
                if sort == "created_at_desc":
                    query = query.where(ScanHistory.created_at < cursor_dt)
                else:
                    query = query.where(ScanHistory.created_at > cursor_dt)

        if sort == "created_at_asc":
            query = query.order_by(asc(ScanHistory.created_at))
        else:
            query = query.order_by(desc(ScanHistory.created_at))
        query = query.limit(limit + 1)

        try:
            scans = list((await db.execute(query)).scalars().all())
            total_count = (
                await db.execute(select(func.count(ScanHistory.id)).where(*filters))
            ).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing scans: %s", type(e).__name__, exc_info=True)
            raise DatabaseError(
                message="Could not retrieve scan history. Please try again.",
                context={"error_type": type(e).__name__},
            )

        has_more = len(scans) > limit
        if has_more:
            scans = scans[:limit]

        next_cursor = scans[-1].created_at.isoformat() if has_more and scans else None

        return ScanListResponse(
            scans=[
                ScanListItem(
                    id=scan.id,
                    ingredients_preview=scan.ingredients[:PREVIEW_LENGTH],
                    risk_level=scan.risk_level,
                    is_problematic=scan.is_problematic,
                    detected_allergens=scan.detected_allergens or [],
                    source=scan.source,
                    created_at=scan.created_at,
                )
                for scan in scans
            ],
            total_count=total_count,
            next_cursor=next_cursor,
            has_more=has_more,
        )


scan_service = ScanService()
