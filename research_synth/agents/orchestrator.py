# =============================================================================
# LangGraph Orchestrator — Literature Review Synthesis
# =============================================================================
#
# Wires the search client and the stage functions into a LangGraph
# StateGraph that turns a topic into a literature-review report.
#
# GRAPH TOPOLOGY:
#   START ─▶ search_topic ─▶ summarize_documents ─▶ find_gaps
#         ─▶ find_opposing ─▶ assemble_report ─▶ END
#
# Node names differ from state keys ("search", "opposing"); LangGraph
# rejects a node that shadows a channel.
#
# DESIGN DECISION: Linear graph, strictly sequential.
# Gap discovery needs every abstract and the opposing-view searches need
# the keyword list, so no stage can start early. Per-document summaries
# and per-keyword searches also run one at a time to stay inside the
# providers' rate limits. Do not fan these out without adding shared
# rate-limit coordination first.
#
# DESIGN DECISION: The report is built incrementally in graph state.
# `sections` uses an additive reducer: every node returns only the
# sections it produced and LangGraph appends them in node order. The
# state belongs to one invocation, so concurrent reviews share nothing.
#
# DESIGN DECISION: Skip-with-placeholder for per-document failures.
# A summary that still fails after retries becomes "Summary unavailable."
# so one bad document does not cost the whole report. AuthFailure is never
# swallowed; a bad key aborts the run. Failures in search, gaps or
# opposing stages abort the run; there is no partial report.
# =============================================================================

from __future__ import annotations

import logging
import operator
from functools import partial
from typing import Annotated

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from research_synth.agents.stages import find_gaps, opposing_keywords, summarize
from research_synth.config import settings
from research_synth.services.errors import AuthFailure, ProviderError
from research_synth.services.llm import LLMProvider, get_llm_provider
from research_synth.services.retry import retry_with_backoff
from research_synth.services.scholar import (
    Document,
    ScholarClient,
    get_scholar_client,
)

logger = logging.getLogger(__name__)

NO_ABSTRACT = "No abstract available."
SUMMARY_UNAVAILABLE = "Summary unavailable."
NO_OPPOSING_VIEWS = "No opposing viewpoints found."
OPPOSING_KEYWORD_LIMIT = 3


# ---------------------------------------------------------------------------
# Review State Schema
# ---------------------------------------------------------------------------


class ReviewState(TypedDict, total=False):
    """
    State that flows through the review graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    topic: str
    limit: int
    completion_retries: int

    # --- Providers ---
    # NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
    # configured on the graph (current: no checkpointer).
    llm: LLMProvider
    search: ScholarClient

    # --- Intermediate (set by nodes) ---
    documents: list[Document]
    abstracts: list[str]
    opposing: list[Document]
    sections: Annotated[list[str], operator.add]

    # --- Output (set by assemble node) ---
    report: str


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def search_node(state: ReviewState) -> dict:
    """Run the single initial search. Any failure here ends the run."""
    documents = await state["search"].search(state["topic"], state["limit"])
    logger.info(
        "Review search: topic='%s', documents=%d",
        state["topic"][:80], len(documents),
    )
    return {
        "documents": documents,
        "sections": [f"# Literature Review: {state['topic']}\n"],
    }


async def summarize_node(state: ReviewState) -> dict:
    """Summarize every document in ranking order, one at a time."""
    llm = state["llm"]
    retries = state["completion_retries"]
    sections: list[str] = []

    for index, document in enumerate(state["documents"], 1):
        abstract = (document.abstract or "").strip()
        if not abstract:
            summary = NO_ABSTRACT
        else:
            try:
                summary = await retry_with_backoff(
                    partial(summarize, abstract, llm), max_retries=retries,
                )
            except AuthFailure:
                raise
            except ProviderError as exc:
                logger.warning(
                    "Summary failed for paper_id=%s, using placeholder: %s",
                    document.paper_id, exc,
                )
                summary = SUMMARY_UNAVAILABLE
        sections.append(_format_document_section(index, document, summary))

    # Empty strings stay in place so abstract N still belongs to document N
    abstracts = [document.abstract or "" for document in state["documents"]]
    return {"sections": sections, "abstracts": abstracts}


async def gaps_node(state: ReviewState) -> dict:
    gaps = await retry_with_backoff(
        partial(find_gaps, state["abstracts"], state["llm"]),
        max_retries=state["completion_retries"],
    )
    return {"sections": [f"## Research Gaps\n{gaps}\n"]}


async def opposing_node(state: ReviewState) -> dict:
    """Find one counter-perspective paper per opposing keyword."""
    keywords = await retry_with_backoff(
        partial(
            opposing_keywords,
            state["topic"],
            OPPOSING_KEYWORD_LIMIT,
            state["llm"],
        ),
        max_retries=state["completion_retries"],
    )

    found: list[Document] = []
    for keyword in keywords:
        if not keyword.strip():
            continue
        results = await state["search"].search(keyword, 1)
        if results:
            found.append(results[0])
        else:
            logger.info("No opposing paper found for keyword '%s'", keyword)

    if found:
        lines = [f"- {document.title} ({document.url})" for document in found]
    else:
        lines = [NO_OPPOSING_VIEWS]
    section = "## Opposing Viewpoints\n" + "\n".join(lines) + "\n"
    return {"opposing": found, "sections": [section]}


async def assemble_node(state: ReviewState) -> dict:
    return {"report": "\n".join(state["sections"])}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------
# Compiled once at module level. The compiled graph is reusable and safe
# for concurrent invocations since all run data lives in the state.
# ---------------------------------------------------------------------------

_builder = StateGraph(ReviewState)
_builder.add_node("search_topic", search_node)
_builder.add_node("summarize_documents", summarize_node)
_builder.add_node("find_gaps", gaps_node)
_builder.add_node("find_opposing", opposing_node)
_builder.add_node("assemble_report", assemble_node)

_builder.add_edge(START, "search_topic")
_builder.add_edge("search_topic", "summarize_documents")
_builder.add_edge("summarize_documents", "find_gaps")
_builder.add_edge("find_gaps", "find_opposing")
_builder.add_edge("find_opposing", "assemble_report")
_builder.add_edge("assemble_report", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def generate_review(
    topic: str,
    limit: int,
    llm: LLMProvider | None = None,
    search: ScholarClient | None = None,
    completion_retries: int | None = None,
) -> str:
    """
    Entry point: run one synthesis and return the assembled report.

    Args:
        topic: Research topic to review.
        limit: Number of papers to search for and summarize.
        llm: Optional completion provider; defaults to the configured one.
        search: Optional search client; defaults to the shared one.
        completion_retries: Attempts per completion call (default from
            settings.completion_max_retries).

    Raises:
        ValueError: If the topic is blank or limit < 1.
        ProviderError: Any unrecovered provider failure.
    """
    if not topic.strip():
        raise ValueError("topic must not be empty")
    if limit < 1:
        raise ValueError("limit must be at least 1")

    initial_state: ReviewState = {
        "topic": topic,
        "limit": limit,
        "completion_retries": (
            completion_retries or settings.completion_max_retries
        ),
        "llm": llm or get_llm_provider(),
        "search": search or get_scholar_client(),
        "sections": [],
    }

    logger.info("Invoking review graph: topic='%s', limit=%d", topic[:80], limit)
    result = await graph.ainvoke(initial_state)
    logger.info(
        "Review graph complete: documents=%d, opposing=%d",
        len(result.get("documents", [])),
        len(result.get("opposing", [])),
    )
    return result["report"]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _format_document_section(index: int, document: Document, summary: str) -> str:
    """
    Format one document for the report.

    Example output:
        ### 1. Graph Databases at Scale
        Authors: Ada Lovelace, Alan Turing
        URL: https://www.semanticscholar.org/paper/abc
        Summary: Three sentences...
    """
    authors = ", ".join(document.author_names) or "Unknown"
    return (
        f"### {index}. {document.title}\n"
        f"Authors: {authors}\n"
        f"URL: {document.url}\n"
        f"Summary: {summary}\n"
    )
