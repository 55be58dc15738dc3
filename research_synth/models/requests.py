# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
#
# DESIGN DECISION: AnalyzeRequest.data is Optional even though it is
# required. A missing field must produce the service's own 400
# {error, message} body, not FastAPI's generic 422.
# =============================================================================

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from research_synth.config import settings


class AnalyzeRequest(BaseModel):
    """
    Request body for POST /analyze — analyse inline financial data.

    `data` is either a JSON string, an already-decoded JSON object/array,
    or CSV text when `format` is "csv".

    Example:
        {
            "data": {"invoices": [{"id": "INV-1", "date": "2024-01-05", "amount": 1200}]},
            "format": "json"
        }
    """

    data: str | dict[str, Any] | list[Any] | None = Field(
        default=None,
        description="Financial records as JSON (string or object) or CSV text",
    )
    format: Literal["json", "csv"] = Field(
        default="json",
        description="How to parse `data`",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "data": {
                        "invoices": [
                            {"id": "INV-1", "date": "2024-01-05", "amount": 1200},
                        ],
                    },
                    "format": "json",
                },
                {
                    "data": "category,id,date,amount\nexpenses,E-1,2024-01-07,300",
                    "format": "csv",
                },
            ]
        }
    )


class ReviewRequest(BaseModel):
    """Request body for POST /review — synthesise a literature review."""

    topic: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Research topic to review",
        examples=["graph databases"],
    )
    limit: int = Field(
        default=settings.review_default_limit,
        ge=1,
        le=100,
        description="Number of papers to search for and summarise",
    )
