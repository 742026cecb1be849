"""
AllerScan Backend — Gemini Service Unit Tests (Mocked)
========================================================

What:  Tests for GeminiService with mocked Google Generative AI SDK.
Why:   Tests should not make real API calls (costs money, requires network).
How:   Patches the genai module and model to simulate success/failure.

What we test:
    ✅ Circuit breaker state machine
    ✅ Markdown fence stripping and JSON decoding of replies
    ✅ Successful analysis / meal calls return decoded JSON
    ✅ API failure → LLMServiceError and a breaker failure
    ✅ Unparseable or safety-blocked reply → AIResponseFormatError without
       tripping the breaker
    ✅ Missing API key → AIConfigurationError before any call
    ❌ Real API calls (use integration tests for that)
"""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from allerscan.config import settings
from allerscan.exceptions import (
    AIConfigurationError,
    AIResponseFormatError,
    CircuitBreakerOpenError,
    LLMServiceError,
    ValidationError,
)
from allerscan.services.gemini_service import (
    CircuitBreaker,
    GeminiService,
    parse_json_reply,
    strip_code_fences,
)


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_open_circuit_rejects_calls(self):
        """OPEN circuit breaker should reject calls with CircuitBreakerOpenError."""
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 60

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)

        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=0)
        cb.state = cb.HALF_OPEN
        cb.record_failure()
        assert cb.state == "open"

    def test_success_closes_and_resets(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_success()
        assert cb.state == "closed"
        assert cb.failure_count == 0
        assert cb.last_failure_time is None


class TestReplyDecoding:

    def test_plain_json_untouched(self):
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fence_removed(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence_removed(self):
        assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_fenced_reply_decodes(self):
        assert parse_json_reply('```json\n{"riskLevel": "LOW"}\n```') == {"riskLevel": "LOW"}

    @pytest.mark.parametrize("reply", [None, "", "   \n"])
    def test_empty_reply_rejected(self, reply):
        with pytest.raises(AIResponseFormatError) as exc_info:
            parse_json_reply(reply)
        assert exc_info.value.message == "No response from AI service"

    def test_prose_reply_rejected(self):
        with pytest.raises(AIResponseFormatError) as exc_info:
            parse_json_reply("Sorry, I cannot help with that.")
        assert exc_info.value.message == "Failed to parse AI response"


def _model_replying(text=None, error=None):
    model = MagicMock()
    if error is not None:
        model.generate_content_async = AsyncMock(side_effect=error)
    else:
        model.generate_content_async = AsyncMock(return_value=MagicMock(text=text))
    return model


class _BlockedReply:
    """A reply whose only candidate was stopped by the safety filters."""

    @property
    def text(self):
        raise ValueError(
            "The `response.text` quick accessor only works when the response contains "
            "a valid `Part`, but none was returned. Check the `candidate.safety_ratings`."
        )


class TestGeminiServiceMocked:
    """Tests for GeminiService with mocked Gemini API."""

    @pytest.mark.asyncio
    async def test_analyze_returns_decoded_object(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying('{"isProblematic": false, "detectedAllergens": []}')

            result = await service.analyze_ingredients("water, salt", ["peanuts"])

        assert result == {"isProblematic": False, "detectedAllergens": []}
        prompt = service.analysis_model.generate_content_async.call_args.args[0]
        assert "water, salt" in prompt
        assert "peanuts" in prompt
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_analyze_requests_json_output(self):
        with patch("allerscan.services.gemini_service.genai") as mock_genai:
            service = GeminiService()
            service.analysis_model = _model_replying("{}")

            await service.analyze_ingredients("sugar", [])

        config_kwargs = mock_genai.GenerationConfig.call_args.kwargs
        assert config_kwargs["response_mime_type"] == "application/json"
        assert config_kwargs["temperature"] == settings.analysis_temperature

    @pytest.mark.asyncio
    async def test_analyze_blank_ingredients_rejected(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying("{}")

            with pytest.raises(ValidationError):
                await service.analyze_ingredients("   ", ["milk"])

        service.analysis_model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_analyze_array_reply_rejected(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying("[1, 2, 3]")

            with pytest.raises(AIResponseFormatError):
                await service.analyze_ingredients("sugar", [])

    @pytest.mark.asyncio
    async def test_bad_json_does_not_trip_breaker(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying("not json at all")

            with pytest.raises(AIResponseFormatError):
                await service.analyze_ingredients("sugar", [])

        assert service.circuit_breaker.failure_count == 0
        assert service.circuit_breaker.state == "closed"

    @pytest.mark.asyncio
    async def test_blocked_reply_is_format_error_without_retry(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = MagicMock()
            service.analysis_model.generate_content_async = AsyncMock(return_value=_BlockedReply())

            with pytest.raises(AIResponseFormatError) as exc_info:
                await service.analyze_ingredients("sugar, peanuts", ["peanuts"])

        assert exc_info.value.message == "No response from AI service"
        assert service.analysis_model.generate_content_async.await_count == 1
        assert service.circuit_breaker.failure_count == 0
        assert service.circuit_breaker.state == "closed"

    @pytest.mark.asyncio
    async def test_api_failure_raises_llm_error_and_counts(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying(error=RuntimeError("connection reset"))

            with pytest.raises(LLMServiceError) as exc_info:
                await service.analyze_ingredients("sugar", [])

        assert not isinstance(exc_info.value, AIResponseFormatError)
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_call(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying("{}")
            for _ in range(service.circuit_breaker.failure_threshold):
                service.circuit_breaker.record_failure()

            with pytest.raises(CircuitBreakerOpenError):
                await service.analyze_ingredients("sugar", [])

        service.analysis_model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_configuration_error(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.analysis_model = _model_replying("{}")

            with patch.object(settings, "gemini_api_key", ""):
                with pytest.raises(AIConfigurationError):
                    await service.analyze_ingredients("sugar", [])

        service.analysis_model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_suggest_meals_wraps_single_object(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.meal_model = _model_replying('{"name": "Rice Bowl"}')

            result = await service.suggest_meals("Suggest a dinner")

        assert result == [{"name": "Rice Bowl"}]

    @pytest.mark.asyncio
    async def test_suggest_meals_returns_list(self):
        with patch("allerscan.services.gemini_service.genai"):
            service = GeminiService()
            service.meal_model = _model_replying('```json\n[{"name": "A"}, {"name": "B"}]\n```')

            result = await service.suggest_meals("Suggest two lunches")

        assert [meal["name"] for meal in result] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_health_check_true_when_models_listed(self):
        with patch("allerscan.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.return_value = [MagicMock()]
            service = GeminiService()
            assert await service.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        with patch("allerscan.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.side_effect = RuntimeError("unreachable")
            service = GeminiService()
            assert await service.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_false_without_key(self):
        with patch("allerscan.services.gemini_service.genai") as mock_genai:
            service = GeminiService()
            with patch.object(settings, "gemini_api_key", ""):
                assert await service.health_check() is False
        mock_genai.list_models.assert_not_called()
