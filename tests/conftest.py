from __future__ import annotations

import json

import pytest

from research_synth.services.llm import LLMResponse


@pytest.fixture
def analysis_payload() -> dict:
    """A model reply that satisfies the AnalysisResult schema."""
    return {
        "cashFlowForecast": {
            "month1": {"inflow": 1000, "outflow": 800, "netFlow": 200, "cumulativeBalance": 200},
            "month2": {"inflow": 1100, "outflow": 900, "netFlow": 200, "cumulativeBalance": 400},
            "month3": {"inflow": 1200, "outflow": 950, "netFlow": 250, "cumulativeBalance": 650},
        },
        "anomalies": [
            {"entryId": "INV-2", "type": "duplicate", "issue": "Same amount and date as INV-1", "severity": "medium"},
        ],
        "procurementSuggestions": [
            {"category": "office", "suggestion": "Consolidate suppliers", "potentialSavings": 120, "implementation": "Q3"},
        ],
        "kpis": {"grossMargin": 0.4, "burnRate": 300, "DSO": 32, "DPO": 28, "currentRatio": 1.5, "quickRatio": 1.1},
        "dataQuality": {"completeness": 0.95, "accuracy": 0.9, "issues": [], "recommendations": ["Add vendor ids"]},
        "summary": "Healthy cash position with one likely duplicate invoice.",
    }


@pytest.fixture
def analysis_response(analysis_payload) -> LLMResponse:
    return LLMResponse(
        content=json.dumps(analysis_payload),
        model="test-model",
        input_tokens=500,
        output_tokens=300,
    )
