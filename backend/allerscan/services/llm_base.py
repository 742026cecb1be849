"""
AllerScan Backend — Abstract LLM Service Interface
====================================================

What:  Abstract base class for the AI provider behind allergen analysis and
       meal suggestions.
How:   Concrete implementations inherit from LLMService and return parsed
       JSON; reshaping and defaulting happen in the calling services.
Who:   ScanService, MealService and the health endpoint.

Tests substitute a Mock/AsyncMock with the same surface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence


class LLMService(ABC):
    """
    Abstract interface for the JSON-returning language model.

    Contract:
        - Implementations handle their own retry logic and error translation
        - Transport failures surface as LLMServiceError / CircuitBreakerOpenError
        - Replies that are not the requested JSON surface as AIResponseFormatError
    """

    @abstractmethod
    async def analyze_ingredients(self, ingredients: str, allergies: Sequence[str]) -> Dict[str, Any]:
        """
        Ask the model which allergens an ingredient list contains.

        Args:
            ingredients: Label text, already trimmed and length-checked.
            allergies: Allergy names to check for; empty means common allergens.

        Returns:
            The raw decoded JSON object (camelCase keys as requested in the prompt).

        Raises:
            ValidationError: ingredients are blank
            AIConfigurationError: no API key configured
            AIResponseFormatError: reply is not a JSON object
            LLMServiceError / CircuitBreakerOpenError: service unavailable
        """
        ...

    @abstractmethod
    async def suggest_meals(self, prompt: str) -> List[Any]:
        """
        Ask the model for meal suggestions.

        Returns:
            The decoded JSON array; a single object reply is wrapped in a list.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight connectivity test (does NOT consume generation quota)."""
        ...
