# =============================================================================
# Analysis API — Financial Data Analysis Endpoints
# =============================================================================
#
# ENDPOINTS:
#   POST /analyze       — inline CSV/JSON data in the request body
#   POST /analyze-file  — multipart upload of a .csv or .json file
#
# FLOW (both endpoints):
#   1. Parse the input (ParseFailure → 400)
#   2. Validate the parsed records (ValidationFailure → 400 + details).
#      The LLM is never called for invalid data.
#   3. Run the financial analyst (one JSON-mode completion, no retry)
#   4. Return {success, analysis, metadata}
#
# DESIGN DECISION: Uploads are written to a temporary file and removed in
# a `finally` block, so nothing is left on disk whether the analysis
# succeeds, fails validation, or the provider errors.
# =============================================================================

from __future__ import annotations

import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from research_synth.agents.analyst import analyze_financial_data
from research_synth.api.deps import (
    error_response,
    failure_response,
    get_llm,
    input_error_response,
)
from research_synth.config import settings
from research_synth.models.requests import AnalyzeRequest
from research_synth.models.responses import AnalyzeResponse, ErrorResponse
from research_synth.services.errors import (
    InputError,
    ParseFailure,
    ValidationFailure,
)
from research_synth.services.llm import LLMProvider
from research_synth.services.parser import (
    count_records,
    parse_csv,
    parse_file,
    parse_json,
)
from research_synth.services.validation import validate_financial_data

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Financial Analysis"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# POST /analyze — Analyse inline financial data
# ---------------------------------------------------------------------------


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses=_ERROR_RESPONSES,
    summary="Analyse financial data supplied in the request body",
)
async def analyze_endpoint(
    request: AnalyzeRequest,
    llm: LLMProvider = Depends(get_llm),
) -> AnalyzeResponse | JSONResponse:
    if request.data is None or request.data == "":
        return error_response(
            400,
            "Missing required field: data",
            message="Please provide financial data in the request body",
        )

    try:
        if request.format == "csv":
            if not isinstance(request.data, str):
                raise ParseFailure("CSV data must be sent as a string")
            records = parse_csv(request.data)
        else:
            records = parse_json(request.data)
        _require_valid(records)
    except InputError as exc:
        logger.info("Rejected /analyze input: %s", exc)
        return input_error_response(exc)

    try:
        analysis = await analyze_financial_data(records, llm)
    except Exception as exc:
        logger.exception("Analysis error: %s", exc)
        return failure_response(exc, "Analysis failed")

    processed = count_records(records)
    logger.info("Financial analysis completed: records=%d", processed)

    return AnalyzeResponse(
        analysis=analysis,
        metadata={
            "processedAt": _now_iso(),
            "recordsProcessed": processed,
        },
    )


# ---------------------------------------------------------------------------
# POST /analyze-file — Analyse an uploaded CSV/JSON file
# ---------------------------------------------------------------------------


@router.post(
    "/analyze-file",
    response_model=AnalyzeResponse,
    responses=_ERROR_RESPONSES,
    summary="Analyse an uploaded CSV or JSON file",
)
async def analyze_file_endpoint(
    file: UploadFile | None = File(
        default=None,
        description="CSV or JSON file with financial records",
    ),
    llm: LLMProvider = Depends(get_llm),
) -> AnalyzeResponse | JSONResponse:
    if file is None or not file.filename:
        return error_response(
            400, "No file uploaded", message="Please upload a CSV or JSON file",
        )

    suffix = Path(file.filename).suffix.lower()
    if suffix not in settings.allowed_upload_extensions:
        return error_response(
            400,
            "Unsupported file format",
            message="Please upload a CSV or JSON file",
        )

    # One byte past the limit is enough to know the upload is too large
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        return error_response(
            413,
            "File too large",
            message=f"Maximum upload size is {settings.max_upload_bytes} bytes",
        )

    temp_path = _save_upload(content, suffix)
    try:
        try:
            records = parse_file(temp_path)
            _require_valid(records)
        except InputError as exc:
            logger.info("Rejected upload %s: %s", file.filename, exc)
            return input_error_response(exc)

        try:
            analysis = await analyze_financial_data(records, llm)
        except Exception as exc:
            logger.exception("File analysis error: %s", exc)
            return failure_response(exc, "File analysis failed")
    finally:
        temp_path.unlink(missing_ok=True)
        logger.debug("Removed temporary upload %s", temp_path)

    return AnalyzeResponse(
        analysis=analysis,
        metadata={
            "fileName": file.filename,
            "fileSize": len(content),
            "processedAt": _now_iso(),
        },
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _require_valid(records: dict) -> None:
    report = validate_financial_data(records)
    if not report.valid:
        raise ValidationFailure(report.errors)


def _save_upload(content: bytes, suffix: str) -> Path:
    """Write upload bytes to a fresh temporary file and return its path."""
    upload_dir: Path | None = None
    if settings.upload_dir:
        upload_dir = Path(settings.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        delete=False, suffix=suffix, dir=upload_dir,
    ) as handle:
        handle.write(content)
    return Path(handle.name)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
