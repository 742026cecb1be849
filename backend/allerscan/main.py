"""
AllerScan Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       lifespan() configures logging on startup and disposes the engine on
       shutdown.
Who:   uvicorn (uvicorn allerscan.main:app); tests build their own client
       around the module-level app.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware:  RateLimit → RequestID → Logging → GZip → CORS  │
    │                                                              │
    │  Routes:  /api/users   /api/family   /api/analyze            │
    │           /api/scans   /api/ocr      /api/meal-suggestions   │
    │           /api/meals/safety-check    /health                 │
    │                                                              │
    │  Exception Handlers: AllerScanError subclasses → JSON body   │
    │      {"error", "message", "details"?, "request_id"}          │
    └──────────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from allerscan import __version__
from allerscan.config import settings
from allerscan.database import dispose_engine
from allerscan.exceptions import (
    AIConfigurationError,
    AIResponseFormatError,
    AllerScanError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    LLMServiceError,
    NotFoundError,
    OcrError,
    UnauthorizedError,
    ValidationError,
)
from allerscan.middleware.logging import RequestLoggingMiddleware
from allerscan.middleware.rate_limit import RateLimitMiddleware
from allerscan.middleware.request_id import RequestIDMiddleware, request_id_var
from allerscan.routes import analyze, family, health, meals, ocr, scans, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: 2026-01-15T12:00:00 [INFO] allerscan.services.scan_service: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("AllerScan Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: family management, history and /health work without Gemini
        logger.error("Configuration error: %s", str(e))
        logger.error("AI features will answer 503 until the configuration is fixed.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("AllerScan Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content = {"error": error, "message": message}
    if details:
        content["details"] = details
    content["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError          → 400
        UnauthorizedError        → 401
        NotFoundError            → 404
        ConflictError            → 409
        OcrError                 → 422
        AIResponseFormatError    → 502 (registered separately from its parent)
        LLMServiceError          → 503
        CircuitBreakerOpenError  → 503
        AIConfigurationError     → 503
        DatabaseError            → 500 (generic message)
        AllerScanError / Exception → 500

    429 is answered by RateLimitMiddleware before a route runs.

    Responses never carry stack traces, SQL or raw AI output; those are
    logged server-side with the request ID.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return _error_response(401, "unauthorized", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message)

    @app.exception_handler(OcrError)
    async def handle_ocr_error(request: Request, exc: OcrError):
        logger.warning("[%s] OCR error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(422, "ocr_error", exc.message)

    @app.exception_handler(AIResponseFormatError)
    async def handle_ai_response_error(request: Request, exc: AIResponseFormatError):
        logger.error("[%s] Unusable AI reply: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(502, "ai_response_error", exc.message)

    @app.exception_handler(LLMServiceError)
    async def handle_llm_error(request: Request, exc: LLMServiceError):
        logger.error("[%s] LLM service error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        details = {"retry_after": exc.retry_after} if exc.retry_after else None
        return _error_response(503, "llm_service_error", exc.message, details, headers=headers)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(AIConfigurationError)
    async def handle_ai_not_configured(request: Request, exc: AIConfigurationError):
        logger.error("[%s] AI feature used without GEMINI_API_KEY", request_id_var.get(""))
        return _error_response(503, "ai_not_configured", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(AllerScanError)
    async def handle_application_error(request: Request, exc: AllerScanError):
        logger.error("[%s] Unhandled application error %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error_response(500, "internal_server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="AllerScan API",
        description=(
            "Family allergy tracking and AI ingredient scanning. Record each family "
            "member's allergies, scan ingredient labels (typed or photographed) for "
            "allergen risk with Google Gemini, and plan allergy-safe meals."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(family.router)
    app.include_router(analyze.router)
    app.include_router(scans.router)
    app.include_router(ocr.router)
    app.include_router(meals.router)
    app.include_router(health.router)

    return app


app = create_app()
