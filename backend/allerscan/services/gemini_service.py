"""
AllerScan Backend — Google Gemini Service Implementation
==========================================================

What:  Concrete LLM service using Google Gemini for allergen analysis and
       meal suggestions.
How:   Sends a rendered prompt to one of two configured models, asks for a
       JSON reply, strips stray markdown fences and decodes it. Calls are
       wrapped in tenacity retries and a process-wide circuit breaker.
Who:   Instantiated once at import; called by ScanService and MealService.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
    2. Circuit breaker to protect against cascade failures when Gemini is down
    3. Per-call timeout passed through request_options
    4. A reply that is not JSON is the model's fault, not the network's:
       it raises AIResponseFormatError and does NOT count as a breaker failure
"""

import json
import logging
import re
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from allerscan.config import settings
from allerscan.exceptions import (
    AIConfigurationError,
    AIResponseFormatError,
    CircuitBreakerOpenError,
    LLMServiceError,
    ValidationError,
)
from allerscan.services.llm_base import LLMService
from allerscan.services.prompts import (
    ANALYSIS_SYSTEM_INSTRUCTION,
    MEAL_SYSTEM_INSTRUCTION,
    build_analysis_prompt,
)

logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r"^```(?:json)?\s*")
_CLOSING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(content: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    content = content.strip()
    if content.startswith("```"):
        content = _OPENING_FENCE.sub("", content)
        content = _CLOSING_FENCE.sub("", content)
    return content


def parse_json_reply(content: Optional[str]) -> Any:
    """
    Decode a model reply.

    Raises:
        AIResponseFormatError: reply is empty or not valid JSON
    """
    if not content or not content.strip():
        raise AIResponseFormatError(message="No response from AI service")
    cleaned = strip_code_fences(content)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("AI reply is not valid JSON: %s", e)
        raise AIResponseFormatError(
            message="Failed to parse AI response",
            raw_content=cleaned,
            context={"details": str(e)},
        )


def _reply_text(response, request_id: str) -> str:
    """
    Text of a Gemini reply, or "" when the reply carries no usable part.

    response.text raises ValueError for a candidate blocked by the safety
    filters or one that came back empty. That is a reply, not a transport
    failure: it is neither retried nor counted by the circuit breaker, and
    parse_json_reply turns the empty string into AIResponseFormatError.
    """
    try:
        return response.text or ""
    except ValueError as e:
        logger.warning("[%s] Gemini reply has no text: %s", request_id, e)
        return ""
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker shared by every Gemini call in the process.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; uvicorn async workers share a single process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of the allergen and meal-planning calls.

    Architecture:
        - Singleton instance created at import
        - Two GenerativeModel objects sharing one API key: an analyst with a
          low temperature and a meal planner with a higher one
        - Both return application/json

    Error Handling Chain:
        API call fails → tenacity retries (N attempts with backoff)
        → All retries fail → record circuit breaker failure → LLMServiceError
        → Circuit breaker threshold reached → future calls rejected instantly
        Reply decodes badly → AIResponseFormatError (breaker untouched)
    """

    def __init__(self):
        if settings.gemini_configured:
            genai.configure(api_key=settings.gemini_api_key)

        self.analysis_model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=ANALYSIS_SYSTEM_INSTRUCTION,
        )
        self.meal_model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=MEAL_SYSTEM_INSTRUCTION,
        )

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def analyze_ingredients(self, ingredients: str, allergies: Sequence[str]) -> Dict[str, Any]:
        if not ingredients or not ingredients.strip():
            raise ValidationError(message="Please provide ingredients to analyze", field="ingredients")

        prompt = build_analysis_prompt(ingredients.strip(), list(allergies))
        payload = await self._generate_json(
            self.analysis_model,
            prompt,
            temperature=settings.analysis_temperature,
            max_output_tokens=settings.analysis_max_tokens,
            operation="analysis",
        )
        if not isinstance(payload, dict):
            raise AIResponseFormatError(
                message="Invalid response format from AI",
                raw_content=json.dumps(payload)[:500],
            )
        return payload

    async def suggest_meals(self, prompt: str) -> List[Any]:
        payload = await self._generate_json(
            self.meal_model,
            prompt,
            temperature=settings.meal_temperature,
            max_output_tokens=settings.meal_max_tokens,
            operation="meals",
        )
        if not isinstance(payload, list):
            payload = [payload]
        return payload

    async def _generate_json(
        self,
        model,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        operation: str,
    ) -> Any:
        """
        Shared call path: configuration check → breaker → retried call → decode.

        Raises:
            AIConfigurationError, CircuitBreakerOpenError, LLMServiceError,
            AIResponseFormatError
        """
        if not settings.gemini_configured:
            raise AIConfigurationError()

        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Starting Gemini %s call (%d prompt chars)", request_id, operation, len(prompt))

        try:
            content = await self._call_gemini_with_retry(
                model, prompt, temperature, max_output_tokens, request_id
            )
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise LLMServiceError(
                message="AI analysis failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Unexpected Gemini error: %s",
                request_id,
                str(e),
                exc_info=True,
            )
            raise LLMServiceError(
                message="Failed to reach the AI service. Please try again.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        return parse_json_reply(content)

    @retry(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self,
        model,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        request_id: str,
    ) -> str:
        """Makes the actual Gemini API call; only this step is retried."""
        start_time = time.time()

        try:
            response = await model.generate_content_async(
                prompt,
                generation_config=genai.GenerationConfig(
                    temperature=temperature,
                    max_output_tokens=max_output_tokens,
                    response_mime_type="application/json",
                ),
                request_options={"timeout": settings.llm_timeout},
            )
            duration_ms = (time.time() - start_time) * 1000
            text = _reply_text(response, request_id)

            logger.info(
                "[%s] Gemini call completed in %.0fms, %d chars returned",
                request_id,
                duration_ms,
                len(text),
            )
            return text

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise

    async def health_check(self) -> bool:
        """
        Check if Gemini API is reachable by listing models (no token cost).

        Returns False without calling out when no API key is configured.
        """
        if not settings.gemini_configured:
            return False
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state shared across all requests.
gemini_service = GeminiService()
