# =============================================================================
# Unit Tests — Stage Functions
# =============================================================================
#
# Each stage is one completion call; the mock provider records the prompt
# so the tests can check what reaches the model and how replies are
# post-processed.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from research_synth.agents.stages import (
    GAPS_PROMPT,
    GAPS_SYSTEM,
    QA_SYSTEM,
    SUMMARY_MAX_TOKENS,
    SUMMARY_SYSTEM,
    answer_question,
    find_gaps,
    opposing_keywords,
    summarize,
)
from research_synth.services.errors import RateLimited
from research_synth.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _mock_llm(content: str) -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.return_value = LLMResponse(
        content=content, model="test-model", input_tokens=10, output_tokens=5,
    )
    return mock_llm


def _user_content(mock_llm: AsyncMock) -> str:
    return mock_llm.complete.call_args.kwargs["messages"][0]["content"]


class TestSummarize:

    def test_returns_trimmed_summary(self):
        mock_llm = _mock_llm("  One. Two. Three.\n")
        assert _run(summarize("An abstract.", mock_llm)) == "One. Two. Three."

    def test_prompt_asks_for_three_sentences_with_bounded_output(self):
        mock_llm = _mock_llm("Summary.")
        _run(summarize("Graphs are great.", mock_llm))

        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["system"] == SUMMARY_SYSTEM
        assert kwargs["max_tokens"] == SUMMARY_MAX_TOKENS
        assert "3 sentences" in _user_content(mock_llm)
        assert "Graphs are great." in _user_content(mock_llm)

    def test_provider_failure_propagates(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = RateLimited("slow down")

        with pytest.raises(RateLimited):
            _run(summarize("An abstract.", mock_llm))


class TestAnswerQuestion:

    def test_question_and_abstract_reach_the_model(self):
        mock_llm = _mock_llm(" It uses B-trees. ")
        answer = _run(answer_question("We index with B-trees.", "How is it indexed?", mock_llm))

        assert answer == "It uses B-trees."
        assert mock_llm.complete.call_args.kwargs["system"] == QA_SYSTEM
        content = _user_content(mock_llm)
        assert "We index with B-trees." in content
        assert "How is it indexed?" in content


class TestFindGaps:

    def test_empty_abstracts_keep_their_position(self):
        mock_llm = _mock_llm("1. Gap\n2. Gap\n3. Gap")
        _run(find_gaps(["First.", "", "Third."], mock_llm))

        assert mock_llm.complete.call_args.kwargs["system"] == GAPS_SYSTEM
        assert _user_content(mock_llm) == GAPS_PROMPT.format(
            abstracts="First.\n\n\n\nThird.",
        )

    def test_prompt_asks_for_exactly_three_gaps(self):
        mock_llm = _mock_llm("gaps")
        _run(find_gaps(["Only one."], mock_llm))
        assert "exactly 3" in _user_content(mock_llm)


class TestOpposingKeywords:

    def test_truncates_to_limit(self):
        mock_llm = _mock_llm("graph skepticism, relational superiority,NoSQL costs, joins, b")
        keywords = _run(opposing_keywords("graph databases", 3, mock_llm))
        assert keywords == ["graph skepticism", "relational superiority", "NoSQL costs"]

    def test_fewer_items_pass_through(self):
        mock_llm = _mock_llm("just one keyword")
        assert _run(opposing_keywords("graph databases", 3, mock_llm)) == [
            "just one keyword",
        ]

    def test_topic_and_limit_in_prompt(self):
        mock_llm = _mock_llm("a, b")
        _run(opposing_keywords("graph databases", 3, mock_llm))

        content = _user_content(mock_llm)
        assert "graph databases" in content
        assert "3" in content
