# =============================================================================
# API Dependencies — Provider Injection and Error Translation
# =============================================================================
#
# Route handlers receive their providers through FastAPI's dependency
# injection, so tests swap them via app.dependency_overrides without
# touching the process-wide singletons.
#
# The second half of this module turns the failure taxonomy into the
# service's JSON error body, {error, message} or {error, details}:
#
#   ParseFailure          → 400 (message)
#   ValidationFailure     → 400 (details: every violated rule)
#   AuthFailure           → 401
#   RateLimited           → 429 (never retried on the server side)
#   SearchFailure         → 502
#   ProviderUnavailable   → 503
#   anything else         → 500, message hidden in production
# =============================================================================

from __future__ import annotations

import logging

from fastapi.responses import JSONResponse

from research_synth.config import settings
from research_synth.models.responses import ErrorResponse
from research_synth.services.errors import (
    AuthFailure,
    InputError,
    ProviderUnavailable,
    RateLimited,
    SearchFailure,
    ValidationFailure,
)
from research_synth.services.llm import LLMProvider, get_llm_provider
from research_synth.services.scholar import ScholarClient, get_scholar_client

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider Dependencies
# ---------------------------------------------------------------------------


def get_llm() -> LLMProvider:
    return get_llm_provider()


def get_search() -> ScholarClient:
    return get_scholar_client()


# ---------------------------------------------------------------------------
# Error Responses
# ---------------------------------------------------------------------------


def error_response(
    status_code: int,
    error: str,
    message: str | None = None,
    details: list[str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


def input_error_response(exc: InputError) -> JSONResponse:
    if isinstance(exc, ValidationFailure):
        return error_response(400, "Data validation failed", details=exc.errors)
    return error_response(400, "Data parsing failed", message=str(exc))


def failure_response(exc: Exception, failure_label: str) -> JSONResponse:
    """
    Translate a provider or unexpected failure into an error response.

    `failure_label` names what the endpoint was doing, e.g.
    "Analysis failed", and is used for the catch-all 500.
    """
    if isinstance(exc, RateLimited):
        return error_response(429, "Rate limited", message=exc.message)
    if isinstance(exc, AuthFailure):
        return error_response(401, "Unauthorized", message=exc.message)
    if isinstance(exc, ProviderUnavailable):
        return error_response(503, "Service unavailable", message=exc.message)
    if isinstance(exc, SearchFailure):
        return error_response(502, "Search provider error", message=exc.message)

    message = "Internal server error" if settings.is_production else str(exc)
    return error_response(500, failure_label, message=message)
