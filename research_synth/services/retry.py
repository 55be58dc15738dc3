# =============================================================================
# Retry With Exponential Backoff — Opt-In Helper for Completion Calls
# =============================================================================
#
# Completion providers classify errors but never retry. Callers that want
# resilience wrap the call:
#
#     response = await retry_with_backoff(lambda: summarize(text, llm))
#
# Attempt N that fails waits 2**N seconds before attempt N+1 (2s, 4s, ...).
# AuthFailure is never retried; a bad key stays bad.
#
# The policy is a tenacity AsyncRetrying built per call. It is distinct
# from the search client's rate-limit retry, which waits a flat delay and
# only reacts to HTTP 429.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from research_synth.services.errors import AuthFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """
    Invoke `operation` up to `max_retries` times.

    Returns the first successful result. Re-raises immediately on
    AuthFailure, and re-raises the last failure once attempts run out.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        # multiplier * 2**(attempt - 1): 2s after attempt 1, 4s after attempt 2
        wait=wait_exponential(multiplier=2, exp_base=2),
        retry=retry_if_not_exception_type(AuthFailure),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=asyncio.sleep,
        reraise=True,
    )
    return await retrying(operation)
