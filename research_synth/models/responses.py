# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API, plus the
# AnalysisResult schema the LLM output is validated against before it is
# ever returned.
#
# DESIGN DECISION: AnalysisResult field names are camelCase on purpose.
# They mirror the JSON the model is instructed to produce and the JSON
# clients receive, so no alias layer is needed.
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


# ---------------------------------------------------------------------------
# Financial Analysis Schema
# ---------------------------------------------------------------------------


class MonthlyCashFlow(BaseModel):
    inflow: float
    outflow: float
    netFlow: float
    cumulativeBalance: float


class Anomaly(BaseModel):
    entryId: str | int
    type: str = Field(description="duplicate, outlier or fraud_risk")
    issue: str
    severity: str = Field(description="low, medium or high")


class ProcurementSuggestion(BaseModel):
    category: str
    suggestion: str
    potentialSavings: float = 0
    implementation: str = ""


class Kpis(BaseModel):
    grossMargin: float | None = None
    burnRate: float | None = None
    DSO: float | None = None
    DPO: float | None = None
    currentRatio: float | None = None
    quickRatio: float | None = None


class DataQuality(BaseModel):
    completeness: float
    accuracy: float
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """
    Structured output of one financial analysis.

    Frozen: produced once per request and never modified afterwards.
    """

    cashFlowForecast: dict[str, MonthlyCashFlow]
    anomalies: list[Anomaly]
    procurementSuggestions: list[ProcurementSuggestion]
    kpis: Kpis
    dataQuality: DataQuality
    summary: str

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Endpoint Responses
# ---------------------------------------------------------------------------


class AnalyzeResponse(BaseModel):
    """
    Response for POST /analyze and POST /analyze-file.

    `metadata` differs per endpoint: /analyze reports processedAt and
    recordsProcessed, /analyze-file reports fileName, fileSize and
    processedAt.
    """

    success: bool = True
    analysis: AnalysisResult
    metadata: dict[str, Any]


class ErrorResponse(BaseModel):
    """Error body shared by every endpoint: a message OR a details list."""

    error: str
    message: str | None = None
    details: list[str] | None = None


class ReviewResponse(BaseModel):
    """Response for POST /review — the assembled literature review."""

    topic: str
    report: str
