# =============================================================================
# Services Package — Providers and Business Logic
# =============================================================================
#   - llm.py: completion providers (OpenAI-compatible, Anthropic)
#   - scholar.py: Semantic Scholar search client with rate-limit retry
#   - retry.py: exponential backoff helper for completion calls
#   - errors.py: typed failure taxonomy
#   - parser.py: CSV/JSON financial data parsing
#   - validation.py: business-rule checks for parsed financial data
# =============================================================================
