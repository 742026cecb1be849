"""
AllerScan Backend — Meal Planning Schemas
===========================================

What:  API contract for AI meal suggestions and the local meal safety check.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")
DIFFICULTIES = ("easy", "medium", "hard")


class MealSuggestionRequest(BaseModel):
    """Body of POST /api/meal-suggestions."""
    meal_types: List[str] = Field(min_length=1, description="breakfast, lunch, dinner, snack")
    member_ids: Optional[List[uuid.UUID]] = Field(
        default=None,
        description="Members eating; all family members when omitted",
    )
    cooking_time: Optional[str] = Field(default=None, max_length=100, description="e.g. 'under 30 minutes'")
    cuisine_preferences: List[str] = Field(default_factory=list)
    special_requests: Optional[str] = Field(default=None, max_length=1000)
    prompt: Optional[str] = Field(default=None, max_length=2000, description="Extra free-text instructions")

    @field_validator("meal_types")
    @classmethod
    def validate_meal_types(cls, v: List[str]) -> List[str]:
        normalized = []
        for meal_type in v:
            key = meal_type.strip().lower()
            if key not in MEAL_TYPES:
                raise ValueError(f"Invalid meal type '{meal_type}'. Must be one of: {', '.join(MEAL_TYPES)}")
            if key not in normalized:
                normalized.append(key)
        return normalized


class MealSafety(BaseModel):
    is_safe: bool
    risks: List[str] = Field(description="Ingredients that match an attending member's allergy")
    attending_members: int


class MealSuggestion(BaseModel):
    name: str
    type: str
    ingredients: List[str]
    prep_time: Union[int, float]
    cook_time: Union[int, float]
    difficulty: str
    cuisine: str
    description: str
    tags: List[str]
    allergen_warnings: List[str]
    safety_notes: str
    safety: MealSafety


class MealSuggestionMetadata(BaseModel):
    generated_at: datetime
    family_members: int = Field(description="Number of attending members")
    meal_types: List[str]
    cooking_time: Optional[str] = None
    cuisine_preferences: List[str]


class MealSuggestionResponse(BaseModel):
    success: bool = True
    suggestions: List[MealSuggestion]
    metadata: MealSuggestionMetadata


class MealSafetyRequest(BaseModel):
    """Body of POST /api/meals/safety-check."""
    ingredients: List[str] = Field(description="Ingredients of the planned meal")
    attendee_ids: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("ingredients")
    @classmethod
    def drop_blank_ingredients(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]
