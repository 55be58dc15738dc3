# =============================================================================
# Agents Package — Synthesis Pipeline
# =============================================================================
#   - stages.py: single-call stages (summarize, answer_question, find_gaps,
#     opposing_keywords)
#   - orchestrator.py: LangGraph review graph — search → summarize → gaps →
#     opposing → assemble
#   - analyst.py: financial analysis with schema-validated JSON output
# =============================================================================
