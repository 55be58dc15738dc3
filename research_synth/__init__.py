# =============================================================================
# Research Synthesis Service
# =============================================================================
# Orchestrates a scholarly search provider and an LLM completion provider to
# turn a research topic into a literature-review report, and raw financial
# data into a structured analysis.
#
# Package structure:
#   research_synth/
#   ├── api/          → FastAPI route handlers (analyze, review)
#   ├── agents/       → stage functions, review graph, financial analyst
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → providers (LLM, Semantic Scholar), retry, parsing,
#   │                    validation, error taxonomy
#   ├── cli.py        → command-line entry point
#   └── main.py       → FastAPI application
# =============================================================================
