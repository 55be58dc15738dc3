# =============================================================================
# Failure Taxonomy — Typed Errors Shared by Providers, Pipeline and Adapters
# =============================================================================
#
# Providers raise these; the review pipeline only swallows them where it
# substitutes a placeholder; the HTTP and CLI adapters translate them into
# status codes and exit codes.
#
#   ProviderError
#   ├── AuthFailure                 — 401, never retried
#   ├── RateLimited                 — 429, retryable
#   ├── ProviderUnavailable         — 5xx, retryable
#   ├── CompletionFailure           — any other LLM failure
#   │   └── MalformedCompletionFailure — output failed schema validation
#   └── SearchFailure               — any other search failure
#
#   InputError
#   ├── ParseFailure                — CSV/JSON could not be parsed
#   └── ValidationFailure           — parsed data violates business rules
# =============================================================================

from __future__ import annotations


class ProviderError(Exception):
    """Base class for failures raised by an external provider."""

    status_code: int | None = None

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthFailure(ProviderError):
    status_code = 401


class RateLimited(ProviderError):
    status_code = 429


class ProviderUnavailable(ProviderError):
    status_code = 503


class CompletionFailure(ProviderError):
    pass


class MalformedCompletionFailure(CompletionFailure):
    """The model answered, but not with the structure we asked for."""


class SearchFailure(ProviderError):
    pass


class InputError(Exception):
    """Base class for problems with caller-supplied data."""


class ParseFailure(InputError):
    pass


class ValidationFailure(InputError):
    """Raised with the full list of violated rules, not just the first."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"{len(errors)} validation error(s): " + "; ".join(errors))
        self.errors = errors


def classify_status(status_code: int | None, message: str) -> ProviderError:
    """
    Map an upstream HTTP status to the matching completion failure.

    Used once per completion call. Search failures are classified by the
    search client itself since a 429 there triggers a retry instead.
    """
    if status_code == 401:
        return AuthFailure(f"Invalid API key: {message}", status_code)
    if status_code == 429:
        return RateLimited(f"Rate limited: {message}", status_code)
    if status_code is not None and status_code >= 500:
        return ProviderUnavailable(
            f"Provider temporarily unavailable: {message}", status_code,
        )
    return CompletionFailure(f"Completion failed: {message}", status_code)
