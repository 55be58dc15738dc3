# =============================================================================
# FastAPI Application — HTTP Service Entry Point
# =============================================================================
#
# Run with:
#   uvicorn research_synth.main:app --reload
#
# DESIGN DECISION: Fail fast at startup. The lifespan hook builds the
# completion provider before the first request is accepted, so a missing
# LLM_API_KEY stops the process at boot instead of surfacing as a 500 on
# the first call.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from research_synth.api import analyze, review
from research_synth.config import configure_logging, settings
from research_synth.models.responses import HealthResponse
from research_synth.services.llm import get_llm_provider
from research_synth.services.scholar import close_scholar_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    get_llm_provider()  # raises ValueError if the API key is missing
    logger.info(
        "%s v%s started (environment=%s)",
        settings.app_name, settings.app_version, settings.environment,
    )
    yield
    await close_scholar_client()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(analyze.router)
app.include_router(review.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
