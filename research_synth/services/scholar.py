# =============================================================================
# Scholarly Search Provider — Semantic Scholar Graph API Client
# =============================================================================
#
# Wraps three Graph API endpoints behind typed methods:
#
#   search(query, limit)          GET /paper/search?query&limit&fields
#   get_details(paper_id)         GET /paper/{id}?fields
#   get_citations(paper_id, limit) GET /paper/{id}/citations?fields&limit
#
# RATE LIMITING: a 429 response is retried by tenacity after a FLAT delay
# (default 5s, no multiplicative backoff). The number of rate-limit
# retries is capped by max_rate_limit_retries (None = retry until
# success), and an optional asyncio.Event aborts the loop, including a
# wait that is already in progress. Every other failure (4xx, 5xx,
# network errors, bad JSON) raises SearchFailure at once.
#
# DESIGN DECISION: The httpx.AsyncClient is injectable. The client owns
# one only when none is passed in, and closes only what it owns. Tests pass
# a client built on httpx.MockTransport.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    stop_when_event_set,
    wait_fixed,
)

from research_synth.config import settings
from research_synth.services.errors import RateLimited, SearchFailure

logger = logging.getLogger(__name__)

PAPER_FIELDS = "title,abstract,authors,url,year,citationCount"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Author:
    name: str


@dataclass(frozen=True, slots=True)
class Document:
    """Normalized paper record returned by every search method."""

    paper_id: str
    title: str
    url: str
    abstract: str | None = None
    authors: tuple[Author, ...] = field(default_factory=tuple)
    year: int | None = None
    citation_count: int | None = None

    @property
    def author_names(self) -> list[str]:
        return [author.name for author in self.authors]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ScholarClient:
    """Async Semantic Scholar client with flat-delay rate-limit retry."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        rate_limit_delay: float | None = None,
        max_rate_limit_retries: int | None = settings.search_max_rate_limit_retries,
    ) -> None:
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.search_timeout_seconds,
        )
        self._base_url = (base_url or settings.search_base_url).rstrip("/")
        self._headers: dict[str, str] = {}
        resolved_key = api_key or settings.search_api_key
        if resolved_key:
            self._headers["x-api-key"] = resolved_key
        self._rate_limit_delay = (
            settings.search_rate_limit_delay
            if rate_limit_delay is None
            else rate_limit_delay
        )
        self._max_rate_limit_retries = max_rate_limit_retries

    async def __aenter__(self) -> ScholarClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def search(
        self,
        query: str,
        limit: int,
        abort: asyncio.Event | None = None,
    ) -> list[Document]:
        """Return up to `limit` documents in provider relevance order."""
        if limit < 1:
            raise ValueError("limit must be at least 1")

        body = await self._get(
            "/paper/search",
            {"query": query, "limit": limit, "fields": PAPER_FIELDS},
            abort,
        )
        documents = [
            _to_document(item)
            for item in body.get("data") or []
            if isinstance(item, dict) and item.get("paperId")
        ][:limit]

        logger.info(
            "Search complete: query='%s', limit=%d, returned=%d",
            query[:80], limit, len(documents),
        )
        return documents

    async def get_details(
        self,
        paper_id: str,
        abort: asyncio.Event | None = None,
    ) -> Document:
        body = await self._get(
            f"/paper/{paper_id}", {"fields": PAPER_FIELDS}, abort,
        )
        if not body.get("paperId"):
            raise SearchFailure(f"Unexpected paper payload for id={paper_id}")
        return _to_document(body)

    async def get_citations(
        self,
        paper_id: str,
        limit: int,
        abort: asyncio.Event | None = None,
    ) -> list[Document]:
        """Return papers citing `paper_id`, in provider order."""
        if limit < 1:
            raise ValueError("limit must be at least 1")

        body = await self._get(
            f"/paper/{paper_id}/citations",
            {"fields": PAPER_FIELDS, "limit": limit},
            abort,
        )
        citing = [
            item.get("citingPaper")
            for item in body.get("data") or []
            if isinstance(item, dict)
        ]
        return [
            _to_document(paper)
            for paper in citing
            if isinstance(paper, dict) and paper.get("paperId")
        ][:limit]

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        abort: asyncio.Event | None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"

        stop = (
            stop_never
            if self._max_rate_limit_retries is None
            else stop_after_attempt(self._max_rate_limit_retries + 1)
        )
        if abort is not None:
            stop = stop | stop_when_event_set(abort)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(_RateLimitedResponse),
            wait=wait_fixed(self._rate_limit_delay),
            stop=stop,
            sleep=partial(_abortable_sleep, abort),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            response = await retrying(self._send, url, params)
        except _RateLimitedResponse as exc:
            if abort is not None and abort.is_set():
                raise SearchFailure("Search aborted while rate limited", 429) from exc
            raise RateLimited(
                f"Search provider still rate limiting after "
                f"{self._max_rate_limit_retries} retries"
            ) from exc

        if response.is_error:
            raise SearchFailure(
                f"Search provider returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
                response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise SearchFailure(f"Search provider returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise SearchFailure("Unexpected search payload shape: expected an object")
        return body

    async def _send(self, url: str, params: dict[str, Any]) -> httpx.Response:
        """One GET; a 429 is raised as _RateLimitedResponse for tenacity."""
        try:
            response = await self._http.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            raise SearchFailure(f"Search request failed: {exc}") from exc

        if response.status_code == 429:
            raise _RateLimitedResponse(url)
        return response


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


class _RateLimitedResponse(Exception):
    """The provider answered 429; the only outcome tenacity retries."""


async def _abortable_sleep(abort: asyncio.Event | None, seconds: float) -> None:
    """Wait out the rate-limit delay, returning early with an error on abort."""
    if abort is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(abort.wait(), timeout=seconds)
    except TimeoutError:
        return
    raise SearchFailure("Search aborted while rate limited", 429)


def _to_document(payload: dict[str, Any]) -> Document:
    paper_id = str(payload["paperId"])
    authors = tuple(
        Author(name=author["name"])
        for author in payload.get("authors") or []
        if isinstance(author, dict) and author.get("name")
    )
    return Document(
        paper_id=paper_id,
        title=(payload.get("title") or "").strip() or "Untitled",
        url=payload.get("url")
        or f"https://www.semanticscholar.org/paper/{paper_id}",
        abstract=payload.get("abstract") or None,
        authors=authors,
        year=payload.get("year"),
        citation_count=payload.get("citationCount"),
    )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — one connection pool per process
_client: ScholarClient | None = None


def get_scholar_client() -> ScholarClient:
    """Return the process-wide search client built from settings."""
    global _client
    if _client is None:
        _client = ScholarClient()
    return _client


async def close_scholar_client() -> None:
    """Close the shared client, if one was ever created."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
