"""
AllerScan Backend — Meal Service
==================================

What:  AI meal suggestions for the members attending a meal, plus a local
       allergen safety check for any planned meal.
How:   Builds the meal prompt from the attending members' allergies, asks
       Gemini for a JSON array, normalizes each suggestion and checks its
       ingredients against the same members.
Who:   POST /api/meal-suggestions and POST /api/meals/safety-check.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Union

from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.config import settings
from allerscan.models.user import User
from allerscan.schemas.meal import (
    DIFFICULTIES,
    MealSafety,
    MealSafetyRequest,
    MealSuggestion,
    MealSuggestionMetadata,
    MealSuggestionRequest,
    MealSuggestionResponse,
)
from allerscan.services.allergen_matcher import check_meal_safety
from allerscan.services.family_service import family_service
from allerscan.services.gemini_service import gemini_service
from allerscan.services.prompts import build_meal_prompt

logger = logging.getLogger(__name__)

DEFAULT_PREP_TIME = 10
DEFAULT_COOK_TIME = 15


def suggestion_count(meal_types: List[str]) -> int:
    return min(len(meal_types) * 2, settings.max_meal_suggestions)


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _strings(value: Any, default: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    return [item for item in value if isinstance(item, str)]


def _minutes(value: Any, default: int) -> Union[int, float]:
    # bool is an int subclass; true/false are not durations
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return default


def normalize_suggestion(raw: Any, index: int, meal_types: List[str]) -> dict:
    """
    Fill every field of one AI suggestion.

    Keys arrive camelCase from the model and leave snake_case. A non-object
    entry is treated as an empty object.
    """
    item = raw if isinstance(raw, dict) else {}

    meal_type = item.get("type")
    meal_type = meal_type.strip().lower() if isinstance(meal_type, str) else ""
    if meal_type not in meal_types:
        meal_type = meal_types[0]

    difficulty = item.get("difficulty")
    difficulty = difficulty.strip().lower() if isinstance(difficulty, str) else ""
    if difficulty not in DIFFICULTIES:
        difficulty = "easy"

    return {
        "name": _text(item.get("name"), f"AI Meal {index + 1}"),
        "type": meal_type,
        "ingredients": _strings(item.get("ingredients"), []),
        "prep_time": _minutes(item.get("prepTime"), DEFAULT_PREP_TIME),
        "cook_time": _minutes(item.get("cookTime"), DEFAULT_COOK_TIME),
        "difficulty": difficulty,
        "cuisine": _text(item.get("cuisine"), "American"),
        "description": _text(item.get("description"), "Delicious family-friendly meal"),
        "tags": _strings(item.get("tags"), ["family-friendly"]),
        "allergen_warnings": _strings(item.get("allergenWarnings"), []),
        "safety_notes": _text(item.get("safetyNotes"), "Reviewed for family safety"),
    }


class MealService:
    """Stateless meal-planning logic."""

    async def suggest_meals(
        self,
        db: AsyncSession,
        user: User,
        request: MealSuggestionRequest,
    ) -> MealSuggestionResponse:
        """
        Generate meal suggestions that avoid the attending members' allergies.

        Raises:
            AIConfigurationError / LLMServiceError / AIResponseFormatError /
            CircuitBreakerOpenError: from the Gemini call
        """
        attending = await family_service.get_attending_members(db, user, request.member_ids)
        count = suggestion_count(request.meal_types)

        prompt = build_meal_prompt(
            attending,
            request.meal_types,
            count,
            cooking_time=request.cooking_time,
            cuisine_preferences=request.cuisine_preferences,
            special_requests=request.special_requests,
            extra_prompt=request.prompt,
        )
        raw_suggestions = await gemini_service.suggest_meals(prompt)

        suggestions = []
        for index, raw in enumerate(raw_suggestions[: settings.max_meal_suggestions]):
            data = normalize_suggestion(raw, index, request.meal_types)
            data["safety"] = MealSafety(**check_meal_safety(data["ingredients"], attending))
            suggestions.append(MealSuggestion(**data))

        unsafe = sum(1 for s in suggestions if not s.safety.is_safe)
        logger.info(
            "Generated %d meal suggestions for %d members (%d flagged by safety check)",
            len(suggestions),
            len(attending),
            unsafe,
        )

        return MealSuggestionResponse(
            suggestions=suggestions,
            metadata=MealSuggestionMetadata(
                generated_at=datetime.now(timezone.utc),
                family_members=len(attending),
                meal_types=request.meal_types,
                cooking_time=request.cooking_time,
                cuisine_preferences=request.cuisine_preferences,
            ),
        )

    async def check_safety(self, db: AsyncSession, user: User, request: MealSafetyRequest) -> MealSafety:
        attending = await family_service.get_attending_members(db, user, request.attendee_ids)
        return MealSafety(**check_meal_safety(request.ingredients, attending))


meal_service = MealService()
