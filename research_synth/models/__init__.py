# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API, plus the AnalysisResult schema
# that LLM output is validated against.
# =============================================================================
