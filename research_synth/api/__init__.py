# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - analyze.py: financial data analysis (/analyze, /analyze-file)
#   - review.py: literature review synthesis (/review)
#   - deps.py: provider dependencies and error-body translation
# =============================================================================
