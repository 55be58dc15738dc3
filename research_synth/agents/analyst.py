# =============================================================================
# Financial Analyst Agent — Structured Analysis of Raw Financial Records
# =============================================================================
#
# Sends validated financial records to the LLM in a single JSON-mode call
# and returns a schema-checked AnalysisResult:
#
#   cashFlowForecast        — 90-day projection, monthly breakdown
#   anomalies               — duplicates, outliers, fraud indicators
#   procurementSuggestions  — working-capital optimisations
#   kpis                    — gross margin, burn rate, DSO, DPO, ratios
#   dataQuality             — completeness/accuracy scores and fixes
#   summary                 — executive summary
#
# DESIGN DECISION: The model output is never trusted structurally.
# It is parsed as JSON (with a fallback that extracts the first JSON
# object from noisy text) and validated with pydantic. Anything that does
# not fit raises MalformedCompletionFailure instead of leaking a
# half-shaped dict to the API response.
#
# DESIGN DECISION: No retry on this path. A 429 from the provider reaches
# the HTTP client as a 429 so the client decides when to try again.
# =============================================================================

from __future__ import annotations

import json
import logging
from json import JSONDecodeError
from typing import Any

from pydantic import ValidationError

from research_synth.config import settings
from research_synth.models.responses import AnalysisResult
from research_synth.services.errors import MalformedCompletionFailure
from research_synth.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

ANALYST_SYSTEM_PROMPT = """You are "OpenRouter Financial Analyst," an expert AI financial analyst and supply-chain consultant.

Given the financial dataset in JSON format supplied by the user, perform a comprehensive analysis:

**Required Analysis:**
1. 90-day cash-flow projection with monthly breakdown
2. Identify anomalies or potential fraud indicators in payments/ledger entries
3. Recommend procurement optimizations to reduce working capital usage
4. Compute key KPIs: gross margin, net burn rate, days sales outstanding (DSO), days payable outstanding (DPO)
5. Data validation and error correction recommendations

**Output Format (JSON only):**
{
  "cashFlowForecast": {
    "month1": { "inflow": 0, "outflow": 0, "netFlow": 0, "cumulativeBalance": 0 },
    "month2": { "inflow": 0, "outflow": 0, "netFlow": 0, "cumulativeBalance": 0 },
    "month3": { "inflow": 0, "outflow": 0, "netFlow": 0, "cumulativeBalance": 0 }
  },
  "anomalies": [
    { "entryId": "string", "type": "duplicate|outlier|fraud_risk", "issue": "description", "severity": "low|medium|high" }
  ],
  "procurementSuggestions": [
    { "category": "string", "suggestion": "string", "potentialSavings": 0, "implementation": "string" }
  ],
  "kpis": {
    "grossMargin": 0,
    "burnRate": 0,
    "DSO": 0,
    "DPO": 0,
    "currentRatio": 0,
    "quickRatio": 0
  },
  "dataQuality": {
    "completeness": 0,
    "accuracy": 0,
    "issues": ["string"],
    "recommendations": ["string"]
  },
  "summary": "Executive summary of findings and recommendations"
}"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def analyze_financial_data(
    records: dict[str, list[dict[str, Any]]],
    llm: LLMProvider,
) -> AnalysisResult:
    """
    Run the financial analysis over already-validated records.

    Raises:
        AuthFailure, RateLimited, ProviderUnavailable, CompletionFailure:
            classified provider errors, propagated unchanged.
        MalformedCompletionFailure: the reply is not a valid AnalysisResult.
    """
    logger.info(
        "Starting financial data analysis: categories=%s", sorted(records),
    )

    response = await llm.complete(
        messages=[
            {
                "role": "user",
                "content": "**Financial Data:**\n" + json.dumps(records, indent=2),
            },
        ],
        system=ANALYST_SYSTEM_PROMPT,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        response_format={"type": "json_object"},
    )

    payload = _parse_json_object(response.content)
    try:
        result = AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        raise MalformedCompletionFailure(
            f"Analysis did not match the expected schema: "
            f"{exc.error_count()} error(s)"
        ) from exc

    logger.info(
        "Financial analysis complete: model=%s, anomalies=%d, tokens=%d+%d",
        response.model, len(result.anomalies),
        response.input_tokens, response.output_tokens,
    )
    return result


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _parse_json_object(content: str) -> dict[str, Any]:
    """Parse possibly noisy model output into a JSON object."""
    if not content.strip():
        raise MalformedCompletionFailure("Model returned an empty response")
    try:
        parsed = json.loads(content)
    except JSONDecodeError:
        parsed = _extract_first_json_object(content)

    if not isinstance(parsed, dict):
        raise MalformedCompletionFailure("Expected a JSON object from the model")
    return parsed


def _extract_first_json_object(content: str) -> dict[str, Any]:
    """Extract the first decodable JSON object from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    raise MalformedCompletionFailure("Could not extract a JSON object from model output")
