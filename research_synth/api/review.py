# =============================================================================
# Review API — Literature Review Synthesis Endpoint
# =============================================================================
#
# POST /review runs one synthesis (search → summarise → gaps → opposing
# views) and returns the assembled report. The endpoint is thin: request
# validation, provider injection, error translation.
#
# A review makes 1 + N + 1 + 1 + K sequential provider calls (N papers,
# K opposing keywords) and may sit in a rate-limit wait, so clients should
# allow generous timeouts.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from research_synth.agents.orchestrator import generate_review
from research_synth.api.deps import (
    error_response,
    failure_response,
    get_llm,
    get_search,
)
from research_synth.models.requests import ReviewRequest
from research_synth.models.responses import ErrorResponse, ReviewResponse
from research_synth.services.llm import LLMProvider
from research_synth.services.scholar import ScholarClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Literature Review"])


@router.post(
    "/review",
    response_model=ReviewResponse,
    responses={
        status: {"model": ErrorResponse}
        for status in (401, 429, 500, 502, 503)
    },
    summary="Synthesise a literature review for a research topic",
)
async def review_endpoint(
    request: ReviewRequest,
    llm: LLMProvider = Depends(get_llm),
    search: ScholarClient = Depends(get_search),
) -> ReviewResponse | JSONResponse:
    logger.info(
        "Review request: topic='%s', limit=%d", request.topic[:80], request.limit,
    )

    try:
        report = await generate_review(
            request.topic, request.limit, llm=llm, search=search,
        )
    except ValueError as exc:
        return error_response(400, "Invalid review request", message=str(exc))
    except Exception as exc:
        logger.exception("Review failed: %s", exc)
        return failure_response(exc, "Review failed")

    return ReviewResponse(topic=request.topic, report=report)
