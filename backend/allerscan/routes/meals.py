"""
AllerScan Backend — Meal Planning Route Handlers
==================================================

    POST /api/meal-suggestions     → AI meal ideas for the attending members
    POST /api/meals/safety-check   → local allergen check of a planned meal
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.meal import (
    MealSafety,
    MealSafetyRequest,
    MealSuggestionRequest,
    MealSuggestionResponse,
)
from allerscan.services.meal_service import meal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Meals"])


@router.post(
    "/meal-suggestions",
    response_model=MealSuggestionResponse,
    responses={
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
        502: {"description": "AI reply could not be parsed", "model": ErrorResponse},
        503: {"description": "AI service unavailable or not configured", "model": ErrorResponse},
    },
    summary="Suggest allergy-safe meals",
    description=(
        "Generates up to two suggestions per requested meal type (six at most). "
        "Each suggestion carries a safety check against the attending members' allergies."
    ),
)
async def suggest_meals(
    body: MealSuggestionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MealSuggestionResponse:
    return await meal_service.suggest_meals(db, user, body)


@router.post(
    "/meals/safety-check",
    response_model=MealSafety,
    responses={
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
    },
    summary="Check a meal's ingredients against attendees' allergies",
)
async def check_meal_safety(
    body: MealSafetyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MealSafety:
    return await meal_service.check_safety(db, user, body)
