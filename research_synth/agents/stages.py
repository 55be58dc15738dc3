# =============================================================================
# Stage Functions — Single-Call Building Blocks of the Review Pipeline
# =============================================================================
#
# Each stage is ONE completion call with a fixed prompt template plus
# deterministic post-processing (strip, split). Stages hold no state and
# read nothing but their arguments, so the orchestrator controls exactly
# which data reaches the model.
#
#   summarize          — 3-sentence summary of one abstract
#   answer_question    — Q&A grounded in one abstract
#   find_gaps          — 3 open research gaps across all abstracts
#   opposing_keywords  — search keywords for the contrary view of a topic
#
# Errors from the provider propagate unchanged; retry policy belongs to
# the caller.
# =============================================================================

from __future__ import annotations

import logging
import re

from research_synth.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt Templates
# ---------------------------------------------------------------------------

SUMMARY_SYSTEM = (
    "You are a research assistant who writes precise, neutral summaries of "
    "academic papers."
)

SUMMARY_PROMPT = "Summarize the following abstract in 3 sentences:\n\n{abstract}"

QA_SYSTEM = (
    "You are a research assistant. Answer questions about the paper "
    "abstract provided by the user. Use ONLY the abstract; if it does not "
    "contain the answer, say so."
)

QA_PROMPT = "Abstract:\n{abstract}\n\nQuestion: {question}"

GAPS_SYSTEM = (
    "You are a senior researcher who identifies open problems in a body of "
    "literature."
)

GAPS_PROMPT = (
    "Based on the following abstracts, identify exactly 3 open research "
    "gaps. Number them 1 to 3 and give one or two sentences for each.\n\n"
    "{abstracts}"
)

OPPOSING_SYSTEM = (
    "You generate academic search keywords. Reply with a single line of "
    "comma-separated keywords and nothing else."
)

OPPOSING_PROMPT = (
    "Give {limit} search keywords that would find papers arguing AGAINST "
    "or critically evaluating the following topic: {topic}"
)

SUMMARY_MAX_TOKENS = 200
QA_MAX_TOKENS = 400
GAPS_MAX_TOKENS = 500
KEYWORDS_MAX_TOKENS = 100

_KEYWORD_SEPARATOR = re.compile(r",\s*")


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


async def summarize(abstract: str, llm: LLMProvider) -> str:
    """Return a 3-sentence summary of `abstract`."""
    response = await llm.complete(
        messages=[
            {"role": "user", "content": SUMMARY_PROMPT.format(abstract=abstract)},
        ],
        system=SUMMARY_SYSTEM,
        max_tokens=SUMMARY_MAX_TOKENS,
    )
    return response.content.strip()


async def answer_question(abstract: str, question: str, llm: LLMProvider) -> str:
    """Answer `question` using only the given abstract as context."""
    response = await llm.complete(
        messages=[
            {
                "role": "user",
                "content": QA_PROMPT.format(abstract=abstract, question=question),
            },
        ],
        system=QA_SYSTEM,
        max_tokens=QA_MAX_TOKENS,
    )
    return response.content.strip()


async def find_gaps(abstracts: list[str], llm: LLMProvider) -> str:
    """
    Identify 3 open research gaps across `abstracts`.

    Empty strings are kept so that position N in the joined text is still
    document N; the list is concatenated as-is.
    """
    logger.info("Finding research gaps across %d abstracts", len(abstracts))
    joined = "\n\n".join(abstracts)
    response = await llm.complete(
        messages=[
            {"role": "user", "content": GAPS_PROMPT.format(abstracts=joined)},
        ],
        system=GAPS_SYSTEM,
        max_tokens=GAPS_MAX_TOKENS,
    )
    return response.content.strip()


async def opposing_keywords(topic: str, limit: int, llm: LLMProvider) -> list[str]:
    """
    Ask the model for keywords opposing `topic`, keeping at most `limit`.

    The reply is split on commas and truncated. Fewer or odd-looking
    entries are passed through untouched.
    """
    response = await llm.complete(
        messages=[
            {
                "role": "user",
                "content": OPPOSING_PROMPT.format(limit=limit, topic=topic),
            },
        ],
        system=OPPOSING_SYSTEM,
        max_tokens=KEYWORDS_MAX_TOKENS,
    )
    keywords = _KEYWORD_SEPARATOR.split(response.content.strip())[:limit]
    logger.info("Opposing keywords for '%s': %s", topic[:80], keywords)
    return keywords
