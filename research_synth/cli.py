"""Command-line entry point for search, stage functions, reviews and analysis."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from research_synth.agents.analyst import analyze_financial_data
from research_synth.agents.orchestrator import OPPOSING_KEYWORD_LIMIT, generate_review
from research_synth.agents.stages import (
    answer_question,
    find_gaps,
    opposing_keywords,
    summarize,
)
from research_synth.config import configure_logging, settings
from research_synth.services.errors import InputError, ProviderError, ValidationFailure
from research_synth.services.llm import (
    LLMProvider,
    create_provider_from_id,
    get_llm_provider,
)
from research_synth.services.parser import parse_file
from research_synth.services.scholar import ScholarClient
from research_synth.services.validation import validate_financial_data

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="research-synth",
        description="Search papers, run synthesis stages and analyse financial data",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Override the LLM, e.g. 'anthropic/claude-sonnet-4-6' or "
        "'openai_compatible/deepseek-chat@https://api.deepseek.com/v1'",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search papers by keywords")
    search.add_argument("keywords", nargs="+")
    search.add_argument("--limit", type=int, default=10)
    search.set_defaults(handler=_search)

    summary = sub.add_parser("summarize", help="Summarize an abstract in 3 sentences")
    summary.add_argument("abstract")
    summary.set_defaults(handler=_summarize)

    chat = sub.add_parser("chat", help="Ask a question about an abstract")
    chat.add_argument("abstract")
    chat.add_argument("question")
    chat.set_defaults(handler=_chat)

    gaps = sub.add_parser("gaps", help="Find research gaps for a topic")
    gaps.add_argument("topic")
    gaps.add_argument("--limit", type=int, default=settings.review_default_limit)
    gaps.set_defaults(handler=_gaps)

    devil = sub.add_parser("devil", help="Find papers opposing a topic")
    devil.add_argument("topic")
    devil.add_argument("--limit", type=int, default=OPPOSING_KEYWORD_LIMIT)
    devil.set_defaults(handler=_devil)

    details = sub.add_parser("details", help="Show details for a paper")
    details.add_argument("paper_id")
    details.set_defaults(handler=_details)

    citations = sub.add_parser("citations", help="List papers citing a paper")
    citations.add_argument("paper_id")
    citations.add_argument("--limit", type=int, default=10)
    citations.set_defaults(handler=_citations)

    review = sub.add_parser("review", help="Generate a literature review")
    review.add_argument("topic")
    review.add_argument("--limit", type=int, default=settings.review_default_limit)
    review.set_defaults(handler=_review)

    analyze = sub.add_parser("analyze", help="Analyse a CSV or JSON financial file")
    analyze.add_argument("file", type=Path)
    analyze.set_defaults(handler=_analyze)

    return parser


# ---------------------------------------------------------------------------
# Command Handlers
# ---------------------------------------------------------------------------


async def _search(args: argparse.Namespace) -> Any:
    async with ScholarClient() as client:
        return await client.search(" ".join(args.keywords), args.limit)


async def _summarize(args: argparse.Namespace) -> Any:
    return await summarize(args.abstract, _llm(args))


async def _chat(args: argparse.Namespace) -> Any:
    return await answer_question(args.abstract, args.question, _llm(args))


async def _gaps(args: argparse.Namespace) -> Any:
    llm = _llm(args)
    async with ScholarClient() as client:
        documents = await client.search(args.topic, args.limit)
    return await find_gaps([doc.abstract or "" for doc in documents], llm)


async def _devil(args: argparse.Namespace) -> Any:
    llm = _llm(args)
    keywords = await opposing_keywords(args.topic, args.limit, llm)
    found = []
    async with ScholarClient() as client:
        for keyword in keywords:
            if not keyword.strip():
                continue
            results = await client.search(keyword, 1)
            found.append({"keyword": keyword, "paper": results[0] if results else None})
    return found


async def _details(args: argparse.Namespace) -> Any:
    async with ScholarClient() as client:
        return await client.get_details(args.paper_id)


async def _citations(args: argparse.Namespace) -> Any:
    async with ScholarClient() as client:
        return await client.get_citations(args.paper_id, args.limit)


async def _review(args: argparse.Namespace) -> Any:
    llm = _llm(args)
    async with ScholarClient() as client:
        return await generate_review(args.topic, args.limit, llm=llm, search=client)


async def _analyze(args: argparse.Namespace) -> Any:
    llm = _llm(args)
    records = parse_file(args.file)
    report = validate_financial_data(records)
    if not report.valid:
        raise ValidationFailure(report.errors)
    return await analyze_financial_data(records, llm)


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Run one command and return the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)

    try:
        result = asyncio.run(args.handler(args))
    except ValidationFailure as exc:
        print("Error: data validation failed", file=sys.stderr)
        for error in exc.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    except (ProviderError, InputError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        # Missing API key, bad --provider or bad arguments
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if isinstance(result, str):
        print(result)
    else:
        print(json.dumps(_to_jsonable(result), indent=2))
    return 0


def run() -> None:
    sys.exit(main())


def _llm(args: argparse.Namespace) -> LLMProvider:
    if args.provider:
        return create_provider_from_id(args.provider)
    return get_llm_provider()


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_jsonable(item) for key, item in value.items()}
    return value


if __name__ == "__main__":
    run()
